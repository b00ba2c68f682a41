import logging

import httpx
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from ...deps import get_polymarket_client, get_risk_oracle_service
from ...oracle.service import RiskOracleService
from ...polymarket.client import PolymarketClient
from ...polymarket.schemas import PolymarketEvent
from ...polymarket.snapshots import snapshot_from_event
from ...settings import settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/risk-oracle/markets")

FEED_ERROR = "Failed to fetch markets"
MAX_MARKETS = 100


@router.get("")
async def assess_markets(
    request: Request,
    limit: int | None = None,
    category: str | None = None,
    client: PolymarketClient = Depends(get_polymarket_client),
    service: RiskOracleService = Depends(get_risk_oracle_service),
):
    limit = settings.POLY_PAGE_LIMIT if limit is None else min(max(limit, 0), MAX_MARKETS)
    try:
        events = await client.fetch_events(limit=limit)
    except httpx.HTTPError:
        logger.exception("polymarket_feed_failed limit=%s", limit)
        return _feed_error()

    events = [event for event in events if event.active]
    if category and category.lower() != "all":
        events = [event for event in events if event.category.lower() == category.lower()]

    snapshots = [snapshot_from_event(event) for event in events]
    request.state.market_count = len(snapshots)
    assessments = await service.assess_batch(snapshots)
    return {
        "success": True,
        "markets": [
            _market_payload(event, assessments[event.event_id].to_payload())
            for event in events
        ],
    }


@router.get("/{event_id}")
async def assess_market(
    event_id: str,
    client: PolymarketClient = Depends(get_polymarket_client),
    service: RiskOracleService = Depends(get_risk_oracle_service),
):
    try:
        event = await client.fetch_event(event_id)
    except httpx.HTTPError:
        logger.exception("polymarket_feed_failed event_id=%s", event_id)
        return _feed_error()
    if event is None:
        return JSONResponse(status_code=404, content={"success": False, "error": "market_not_found"})

    assessment = await service.assess(snapshot_from_event(event))
    return {"success": True, "market": _market_payload(event, assessment.to_payload())}


def _market_payload(event: PolymarketEvent, assessment: dict) -> dict:
    return {
        "id": event.event_id,
        "title": event.title,
        "category": event.category,
        "yesPrice": event.p_yes,
        "noPrice": event.p_no,
        "volume": event.volume,
        "liquidity": event.liquidity,
        "endDate": event.end_date.isoformat() if event.end_date else None,
        "assessment": assessment,
    }


def _feed_error() -> JSONResponse:
    return JSONResponse(status_code=502, content={"success": False, "error": FEED_ERROR})
