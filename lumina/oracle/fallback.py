from .models import RISK_SCORE_RANGE, MarketSnapshot, RiskAssessment, RiskFactors, clamp, round_half_up

FALLBACK_CONFIDENCE = 70
FALLBACK_REASONING = "Fallback calculation based on market metrics"

LOW_RISK_THRESHOLD = 30
HIGH_RISK_THRESHOLD = 60


def calculate_fallback_risk(snapshot: MarketSnapshot) -> RiskAssessment:
    """Rule-based assessment used when no AI backend answered.

    Pure function of the snapshot: the same input always yields the same output.
    """
    skew = abs(snapshot.yes_odds - snapshot.no_odds)
    liquidity_score = min(100.0, snapshot.liquidity / 10000 * 100)
    time_score = max(0.0, 100 - (snapshot.time_to_expiry / 24) * 10)

    risk_score = skew * 0.4 + (100 - liquidity_score) * 0.3 + time_score * 0.3

    premium_rate, payout_rate = _tier_rates(risk_score)

    return RiskAssessment(
        risk_score=clamp(round_half_up(risk_score), RISK_SCORE_RANGE),
        premium_rate=premium_rate,
        payout_rate=payout_rate,
        confidence=FALLBACK_CONFIDENCE,
        factors=RiskFactors(
            volatility=round_half_up(skew),
            liquidity=round_half_up(liquidity_score),
            time_decay=round_half_up(time_score),
            market_skew=round_half_up(skew),
        ),
        reasoning=FALLBACK_REASONING,
    )


def _tier_rates(risk_score: float) -> tuple[float, float]:
    if risk_score < LOW_RISK_THRESHOLD:
        return 3.5, 45.0
    if risk_score > HIGH_RISK_THRESHOLD:
        return 7.0, 58.0
    return 5.0, 50.0
