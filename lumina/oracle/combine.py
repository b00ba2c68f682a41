from collections.abc import Sequence

from .models import (
    CONFIDENCE_RANGE,
    FACTOR_RANGE,
    PAYOUT_RATE_RANGE,
    PREMIUM_RATE_RANGE,
    RISK_SCORE_RANGE,
    RiskAssessment,
    RiskFactors,
    clamp,
    round_half_up,
)

_FACTOR_FIELDS = ("volatility", "liquidity", "time_decay", "market_skew")


def combine_assessments(assessments: Sequence[RiskAssessment], labels: Sequence[str]) -> RiskAssessment:
    """
    Merge backend assessments into one, weighting each by its own confidence.

    - risk score, premium, payout and every factor are confidence-weighted
    - confidence itself is the plain mean of the reported confidences
    - reasoning names the contributing backends instead of merging their text
    """
    if not assessments:
        raise ValueError("combine_assessments requires at least one assessment")
    if len(assessments) != len(labels):
        raise ValueError("each assessment needs exactly one label")

    weights = [a.confidence for a in assessments]
    total_weight = sum(weights)
    if total_weight <= 0:
        # Every backend reported zero confidence; weigh them equally.
        weights = [1.0] * len(assessments)
        total_weight = float(len(assessments))

    def weighted(values: Sequence[float]) -> float:
        return sum(value * weight for value, weight in zip(values, weights)) / total_weight

    risk_score = weighted([a.risk_score for a in assessments])
    premium_rate = weighted([a.premium_rate for a in assessments])
    payout_rate = weighted([a.payout_rate for a in assessments])
    confidence = sum(a.confidence for a in assessments) / len(assessments)

    factors = {
        name: clamp(
            round_half_up(weighted([getattr(a.factors, name) for a in assessments])),
            FACTOR_RANGE,
        )
        for name in _FACTOR_FIELDS
    }

    return RiskAssessment(
        risk_score=clamp(round_half_up(risk_score), RISK_SCORE_RANGE),
        premium_rate=clamp(round_half_up(premium_rate, 1), PREMIUM_RATE_RANGE),
        payout_rate=clamp(round_half_up(payout_rate, 1), PAYOUT_RATE_RANGE),
        confidence=clamp(round_half_up(confidence), CONFIDENCE_RANGE),
        factors=RiskFactors(**factors),
        reasoning=combined_reasoning(labels),
    )


def combined_reasoning(labels: Sequence[str]) -> str:
    count = len(labels)
    suffix = "s" if count > 1 else ""
    return f"Combined analysis from {' + '.join(labels)} ({count} AI{suffix})"
