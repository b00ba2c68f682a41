from .models import MarketSnapshot

SYSTEM_PROMPT = (
    "You are an expert AI risk analyst for prediction market insurance. "
    "Always respond with valid JSON only."
)

_OUTPUT_CONTRACT = """Return ONLY valid JSON, a single object with no text before or after it:
{
  "riskScore": number,
  "premiumRate": number,
  "payoutRate": number,
  "confidence": number,
  "factors": {
    "volatility": number,
    "liquidity": number,
    "timeDecay": number,
    "marketSkew": number
  },
  "reasoning": "brief explanation"
}"""

_BRIEF_GUIDE = """Calculate:
1. Risk Score (0-100): Overall risk level
2. Premium Rate (3-8%): Insurance cost
3. Payout Rate (40-60%): Refund if user loses
4. Risk Factors (0-100 each): volatility, liquidity, timeDecay, marketSkew
5. Confidence (0-100): Your assessment confidence"""

_DETAILED_GUIDE = """Calculate:
1. Risk Score (0-100): Overall risk level
   - 0-30: Low risk (stable, high liquidity)
   - 31-60: Medium risk (moderate volatility)
   - 61-100: High risk (volatile, low liquidity)

2. Premium Rate (3-8%): Insurance cost
   - Low risk: 3-4%
   - Medium risk: 4-6%
   - High risk: 6-8%

3. Payout Rate (40-60%): Refund if user loses
   - High risk: 55-60% (more protection)
   - Medium risk: 48-54%
   - Low risk: 40-47% (less protection)

4. Risk Factors (0-100 each):
   - Volatility: Price swing likelihood
   - Liquidity: Market depth
   - Time Decay: Urgency factor
   - Market Skew: Odds imbalance

5. Confidence (0-100): Your assessment confidence"""


def build_risk_prompt(snapshot: MarketSnapshot, *, detailed: bool = False) -> str:
    guide = _DETAILED_GUIDE if detailed else _BRIEF_GUIDE
    return (
        "You are an AI risk analyst for prediction market insurance. "
        "Analyze this market and provide risk assessment.\n\n"
        "Market Details:\n"
        f"- Question: {snapshot.question}\n"
        f"- Category: {snapshot.category}\n"
        f"- Current Odds: YES {_format_number(snapshot.yes_odds)}% / NO {_format_number(snapshot.no_odds)}%\n"
        f"- Total Volume: ${_format_number(snapshot.total_volume)}\n"
        f"- Liquidity: ${_format_number(snapshot.liquidity)}\n"
        f"- Time to Expiry: {_format_number(snapshot.time_to_expiry)} hours\n\n"
        f"{guide}\n\n"
        f"{_OUTPUT_CONTRACT}"
    )


def _format_number(value: float) -> str:
    # Thousands separators, at most three decimals, no trailing zeros.
    formatted = f"{value:,.3f}".rstrip("0").rstrip(".")
    return formatted or "0"
