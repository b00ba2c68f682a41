import asyncio
import logging
from collections.abc import Sequence

from ..cache import AssessmentCache, assessment_cache_key
from .aggregator import RiskAggregator
from .errors import AssessmentSuperseded
from .models import MarketSnapshot, RiskAssessment

logger = logging.getLogger(__name__)

DEFAULT_CACHE_TTL_SECONDS = 300


class RiskOracleService:
    """Caching front for the aggregator.

    Tracks one in-flight assessment per market so a newer request can abort an
    older one. Only finished, non-cancelled assessments are cached.
    """

    def __init__(
        self,
        aggregator: RiskAggregator,
        cache: AssessmentCache,
        *,
        ttl_seconds: int = DEFAULT_CACHE_TTL_SECONDS,
    ) -> None:
        self.aggregator = aggregator
        self.cache = cache
        self.ttl_seconds = ttl_seconds
        self._inflight: dict[str, asyncio.Task] = {}
        self._superseded: set[asyncio.Task] = set()

    async def get_cached(self, market_id: str) -> RiskAssessment | None:
        return await self.cache.get(assessment_cache_key(market_id))

    async def assess(self, snapshot: MarketSnapshot, *, supersede: bool = False) -> RiskAssessment:
        market_id = snapshot.market_id
        cached = await self.get_cached(market_id)
        if cached is not None:
            logger.debug("risk_cache_hit market_id=%s", market_id)
            return cached

        previous = self._inflight.get(market_id)
        if supersede and previous is not None and not previous.done():
            logger.info("risk_assessment_superseded market_id=%s", market_id)
            self._superseded.add(previous)
            previous.cancel()

        task = asyncio.ensure_future(self.aggregator.calculate_risk_score(snapshot))
        self._inflight[market_id] = task
        try:
            assessment = await task
        except asyncio.CancelledError:
            if task in self._superseded:
                raise AssessmentSuperseded(market_id) from None
            raise
        finally:
            self._superseded.discard(task)
            if self._inflight.get(market_id) is task:
                del self._inflight[market_id]

        await self.cache.set(assessment_cache_key(market_id), assessment, self.ttl_seconds)
        return assessment

    def cancel(self, market_id: str) -> bool:
        task = self._inflight.get(market_id)
        if task is None or task.done():
            return False
        logger.info("risk_assessment_cancelled market_id=%s", market_id)
        task.cancel()
        return True

    async def assess_batch(self, snapshots: Sequence[MarketSnapshot]) -> dict[str, RiskAssessment]:
        found: dict[str, RiskAssessment] = {}
        misses: list[MarketSnapshot] = []
        for snapshot in snapshots:
            cached = await self.get_cached(snapshot.market_id)
            if cached is not None:
                found[snapshot.market_id] = cached
            else:
                misses.append(snapshot)

        if misses:
            fresh = await self.aggregator.batch_calculate_risk_scores(misses)
            for market_id, assessment in fresh.items():
                await self.cache.set(assessment_cache_key(market_id), assessment, self.ttl_seconds)
            found.update(fresh)

        logger.info(
            "risk_batch_assessed total=%s cached=%s computed=%s",
            len(snapshots),
            len(snapshots) - len(misses),
            len(misses),
        )
        return {snapshot.market_id: found[snapshot.market_id] for snapshot in snapshots}
