import json
import logging
from datetime import datetime, timezone

from .settings import settings

_MODULE_LEVELS = {
    # per-backend failures and the combined result are the operational signal
    "lumina.oracle.aggregator": logging.INFO,
    "lumina.oracle.backends.base": logging.INFO,
    "lumina.oracle.service": logging.INFO,
    "lumina.cache": logging.INFO,
    "lumina.http": logging.INFO,
    # RequestLoggingMiddleware already writes one line per request
    "uvicorn.access": logging.WARNING,
    "lumina.polymarket.client": logging.WARNING,
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
}

_DEBUG_EXEMPT = {"httpx", "httpcore", "uvicorn.access"}

_CONFIGURED = False


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        try:
            message = record.getMessage()
        except TypeError:
            # Guard against mismatched printf-style arguments; fallback to raw message.
            message = str(record.msg)
        payload = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": message,
            "env": settings.ENV,
        }
        market_id = getattr(record, "market_id", None)
        if market_id is not None:
            payload["market_id"] = market_id
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=True)


def configure_logging() -> None:
    global _CONFIGURED
    if _CONFIGURED:
        return

    root = logging.getLogger()
    root_level = _coerce_log_level(settings.LOG_LEVEL, default=logging.INFO)
    if settings.ENV.lower() == "prod" and root_level < logging.INFO:
        root_level = logging.INFO
    root.setLevel(root_level)

    handler = logging.StreamHandler()
    if settings.LOG_JSON:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s"))

    root.handlers = [handler]

    for name, level in _MODULE_LEVELS.items():
        logger = logging.getLogger(name)
        target_level = level
        if root_level <= logging.DEBUG and name not in _DEBUG_EXEMPT:
            target_level = logging.DEBUG
        logger.setLevel(target_level)
    _CONFIGURED = True


def _coerce_log_level(value: str, default: int) -> int:
    if not value:
        return default
    level = logging.getLevelName(str(value).upper())
    return level if isinstance(level, int) else default
