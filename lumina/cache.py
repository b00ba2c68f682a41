import json
import logging
import time
from typing import Callable, Protocol

import redis.asyncio as redis
from pydantic import ValidationError

from .oracle.models import RiskAssessment
from .settings import Settings

logger = logging.getLogger(__name__)

CACHE_PREFIX = "risk"
ASSESSMENT_CACHE_KEY = CACHE_PREFIX + ":assessment:{market_id}"


class AssessmentCache(Protocol):
    async def get(self, key: str) -> RiskAssessment | None: ...

    async def set(self, key: str, value: RiskAssessment, ttl_seconds: int) -> None: ...


def assessment_cache_key(market_id: str) -> str:
    return ASSESSMENT_CACHE_KEY.format(market_id=market_id)


class InMemoryAssessmentCache:
    """Process-lifetime map. Expired entries are swept on every write."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._entries: dict[str, tuple[float, RiskAssessment]] = {}

    async def get(self, key: str) -> RiskAssessment | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        return value

    async def set(self, key: str, value: RiskAssessment, ttl_seconds: int) -> None:
        ttl_seconds = max(float(ttl_seconds), 0.0)
        if ttl_seconds <= 0:
            return
        now = self._clock()
        self._sweep(now)
        self._entries[key] = (now + ttl_seconds, value)

    def _sweep(self, now: float) -> None:
        expired = [key for key, (expires_at, _) in self._entries.items() if expires_at <= now]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug("cache_swept expired=%s live=%s", len(expired), len(self._entries))

    def __len__(self) -> int:
        now = self._clock()
        return sum(1 for expires_at, _ in self._entries.values() if expires_at > now)


class RedisAssessmentCache:
    """Shares assessments across workers. Redis errors degrade to cache misses."""

    def __init__(self, redis_conn: redis.Redis) -> None:
        self._redis = redis_conn

    async def get(self, key: str) -> RiskAssessment | None:
        try:
            raw = await self._redis.get(key)
        except redis.RedisError:
            logger.exception("cache_read_failed key=%s", key)
            return None
        if not raw:
            return None
        try:
            if isinstance(raw, (bytes, bytearray)):
                raw = raw.decode()
            return RiskAssessment.model_validate(json.loads(raw))
        except (ValueError, ValidationError):
            logger.warning("cache_payload_invalid key=%s", key)
            return None

    async def set(self, key: str, value: RiskAssessment, ttl_seconds: int) -> None:
        ttl_seconds = int(ttl_seconds)
        if ttl_seconds <= 0:
            return
        try:
            await self._redis.set(key, json.dumps(value.to_payload(), ensure_ascii=True), ex=ttl_seconds)
        except redis.RedisError:
            logger.exception("cache_write_failed key=%s", key)


def build_assessment_cache(settings: Settings) -> AssessmentCache:
    backend = settings.RISK_CACHE_BACKEND
    if backend == "redis":
        return RedisAssessmentCache(
            redis.from_url(
                settings.REDIS_URL,
                socket_timeout=settings.RISK_CACHE_SOCKET_TIMEOUT_SECONDS,
                socket_connect_timeout=settings.RISK_CACHE_SOCKET_TIMEOUT_SECONDS,
            )
        )
    if backend != "memory":
        logger.warning("cache_backend_unknown backend=%s using=memory", backend)
    return InMemoryAssessmentCache()
