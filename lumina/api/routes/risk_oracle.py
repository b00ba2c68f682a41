import logging
from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from ...deps import get_risk_oracle_service
from ...oracle.models import MarketSnapshot
from ...oracle.service import RiskOracleService

logger = logging.getLogger(__name__)

router = APIRouter()

INVALID_REQUEST_ERROR = "Invalid request format"
INTERNAL_ERROR = "Failed to calculate risk"


@router.post("/risk-oracle")
async def risk_oracle(
    request: Request,
    service: RiskOracleService = Depends(get_risk_oracle_service),
):
    try:
        payload = await request.json()
    except ValueError:
        return _invalid_request()
    if not isinstance(payload, dict):
        return _invalid_request()

    markets = payload.get("markets")
    single = bool(payload.get("marketId")) and markets is None
    if not single and not isinstance(markets, list):
        return _invalid_request()

    try:
        if single:
            snapshots = [snapshot_from_payload(payload)]
        else:
            snapshots = [snapshot_from_payload(market) for market in markets]
    except ValueError:
        logger.info(
            "risk_oracle_invalid_request mode=%s keys=%s",
            "single" if single else "batch",
            sorted(payload.keys()),
        )
        return _invalid_request()

    _set_request_state(request, "market_count", len(snapshots))
    try:
        if single:
            snapshot = snapshots[0]
            cached = await service.get_cached(snapshot.market_id)
            if cached is not None:
                _set_request_state(request, "cache_status", "hit")
                return {"success": True, "assessment": cached.to_payload()}
            _set_request_state(request, "cache_status", "miss")
            assessment = await service.assess(snapshot)
            return {"success": True, "assessment": assessment.to_payload()}

        assessments = await service.assess_batch(snapshots)
        return {
            "success": True,
            "assessments": {
                market_id: assessment.to_payload()
                for market_id, assessment in assessments.items()
            },
        }
    except Exception:
        logger.exception("risk_oracle_failed")
        return JSONResponse(status_code=500, content={"success": False, "error": INTERNAL_ERROR})


def snapshot_from_payload(payload: Any) -> MarketSnapshot:
    """Build a snapshot from a camelCase request body, clamping negative expiry to zero.

    Raises ``ValueError`` (pydantic's ``ValidationError`` included) for malformed input.
    """
    if not isinstance(payload, dict):
        raise ValueError("market payload must be an object")
    data = dict(payload)
    time_to_expiry = data.get("timeToExpiry")
    if isinstance(time_to_expiry, (int, float)) and not isinstance(time_to_expiry, bool):
        data["timeToExpiry"] = max(0.0, float(time_to_expiry))
    if data.get("marketId") is not None:
        data["marketId"] = str(data["marketId"])
    return MarketSnapshot.model_validate(data)


def _invalid_request() -> JSONResponse:
    return JSONResponse(status_code=400, content={"success": False, "error": INVALID_REQUEST_ERROR})


def _set_request_state(request: Request, name: str, value: Any) -> None:
    try:
        setattr(request.state, name, value)
    except Exception:
        return
