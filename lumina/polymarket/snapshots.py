from datetime import datetime, timezone

from ..oracle.models import MarketSnapshot, clamp
from .schemas import PolymarketEvent

_ODDS_RANGE = (0.0, 100.0)


def hours_until(end_date: datetime | None, now: datetime | None = None) -> float:
    """Hours left before ``end_date``; past or unknown end dates count as zero."""
    if end_date is None:
        return 0.0
    now = now or datetime.now(timezone.utc)
    return max(0.0, (end_date - now).total_seconds() / 3600)


def snapshot_from_event(event: PolymarketEvent, now: datetime | None = None) -> MarketSnapshot:
    return MarketSnapshot(
        market_id=event.event_id,
        question=event.title,
        yes_odds=clamp(round(event.p_yes * 100, 2), _ODDS_RANGE),
        no_odds=clamp(round(event.p_no * 100, 2), _ODDS_RANGE),
        total_volume=event.volume,
        liquidity=event.liquidity,
        time_to_expiry=hours_until(event.end_date, now),
        category=event.category,
    )
