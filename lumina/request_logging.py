import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger("lumina.http")

CACHE_HEADER = "X-Risk-Cache"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """One log line per oracle request, with the market count and cache outcome.

    Routes report those through ``request.state.market_count`` and
    ``request.state.cache_status``; the cache outcome is echoed back in a
    response header so callers can tell cached assessments apart.
    """

    async def dispatch(self, request, call_next):
        start = time.monotonic()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            cache_status = getattr(request.state, "cache_status", None)
            if cache_status:
                response.headers[CACHE_HEADER] = cache_status
            return response
        finally:
            duration_ms = int((time.monotonic() - start) * 1000)
            level = logging.WARNING if status_code >= 500 else logging.INFO
            logger.log(
                level,
                "oracle_request method=%s path=%s status=%s duration_ms=%s markets=%s cache=%s",
                request.method.upper(),
                request.url.path,
                status_code,
                duration_ms,
                getattr(request.state, "market_count", "-"),
                getattr(request.state, "cache_status", "none"),
            )
