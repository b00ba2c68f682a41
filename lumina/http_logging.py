import logging
import time

import httpx

from .settings import settings

logger = logging.getLogger("lumina.http")


def upstream_call_outcome(response: httpx.Response, duration_seconds: float, slow_threshold: float) -> str:
    """Classify an outbound call as ok, slow, failed or failed_slow."""
    is_slow = slow_threshold > 0 and duration_seconds >= slow_threshold
    if response.is_success:
        return "slow" if is_slow else "ok"
    return "failed_slow" if is_slow else "failed"


def log_upstream_response(
    response: httpx.Response,
    duration_seconds: float,
    *,
    upstream: str,
    market_id: str | None = None,
) -> str:
    """
    Log one call to an AI backend or the market feed.

    Healthy calls go out at DEBUG so per-backend latency can be traced on
    demand; slow or failed calls are WARNING. The query string never reaches
    the log since provider keys may travel there.
    """
    outcome = upstream_call_outcome(
        response,
        duration_seconds,
        max(settings.HTTPX_SLOW_REQUEST_THRESHOLD_SECONDS, 0.0),
    )
    level = logging.DEBUG if outcome == "ok" else logging.WARNING
    logger.log(
        level,
        "upstream_call_%s upstream=%s market_id=%s status=%s latency_ms=%s host=%s path=%s",
        outcome,
        upstream,
        market_id or "-",
        response.status_code,
        int(duration_seconds * 1000),
        response.request.url.host,
        response.request.url.path,
        extra={"market_id": market_id} if market_id else None,
    )
    return outcome


class HttpxTimer:
    def __init__(self) -> None:
        self._start = time.monotonic()

    def elapsed(self) -> float:
        return time.monotonic() - self._start
