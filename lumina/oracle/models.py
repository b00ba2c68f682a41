import math

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

RISK_SCORE_RANGE = (0.0, 100.0)
PREMIUM_RATE_RANGE = (3.0, 8.0)
PAYOUT_RATE_RANGE = (40.0, 60.0)
CONFIDENCE_RANGE = (0.0, 100.0)
FACTOR_RANGE = (0.0, 100.0)

_MODEL_CONFIG = ConfigDict(
    alias_generator=to_camel,
    populate_by_name=True,
    frozen=True,
    allow_inf_nan=False,
)


class MarketSnapshot(BaseModel):
    """Point-in-time features of one prediction market.

    Odds are implied probabilities in percent and need not sum to 100.
    Volume and liquidity are USD. ``time_to_expiry`` is in hours and must
    already be clamped to zero by whoever builds the snapshot.
    """

    model_config = _MODEL_CONFIG

    market_id: str = Field(min_length=1)
    question: str
    yes_odds: float = Field(ge=0, le=100)
    no_odds: float = Field(ge=0, le=100)
    total_volume: float = Field(ge=0)
    liquidity: float = Field(ge=0)
    time_to_expiry: float = Field(ge=0)
    category: str = "Other"


class RiskFactors(BaseModel):
    model_config = _MODEL_CONFIG

    volatility: float = Field(ge=FACTOR_RANGE[0], le=FACTOR_RANGE[1])
    liquidity: float = Field(ge=FACTOR_RANGE[0], le=FACTOR_RANGE[1])
    time_decay: float = Field(ge=FACTOR_RANGE[0], le=FACTOR_RANGE[1])
    market_skew: float = Field(ge=FACTOR_RANGE[0], le=FACTOR_RANGE[1])


class RiskAssessment(BaseModel):
    model_config = _MODEL_CONFIG

    risk_score: float = Field(ge=RISK_SCORE_RANGE[0], le=RISK_SCORE_RANGE[1])
    premium_rate: float = Field(ge=PREMIUM_RATE_RANGE[0], le=PREMIUM_RATE_RANGE[1])
    payout_rate: float = Field(ge=PAYOUT_RATE_RANGE[0], le=PAYOUT_RATE_RANGE[1])
    confidence: float = Field(ge=CONFIDENCE_RANGE[0], le=CONFIDENCE_RANGE[1])
    factors: RiskFactors
    reasoning: str = ""

    def to_payload(self) -> dict:
        return self.model_dump(by_alias=True)


def clamp(value: float, bounds: tuple[float, float]) -> float:
    low, high = bounds
    return max(low, min(high, value))


def round_half_up(value: float, digits: int = 0) -> float:
    """Round with ties going up, matching how the front-end rounds scores."""
    scale = 10 ** digits
    return math.floor(value * scale + 0.5) / scale
