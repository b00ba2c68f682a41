import asyncio
import logging
from collections.abc import Sequence

from .backends.base import RiskBackend
from .combine import combine_assessments
from .fallback import calculate_fallback_risk
from .models import MarketSnapshot, RiskAssessment

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 5
DEFAULT_BATCH_DELAY_SECONDS = 1.0


class RiskAggregator:
    def __init__(
        self,
        backends: Sequence[RiskBackend],
        *,
        batch_size: int = DEFAULT_BATCH_SIZE,
        batch_delay_seconds: float = DEFAULT_BATCH_DELAY_SECONDS,
    ) -> None:
        self.backends = list(backends)
        self.batch_size = max(int(batch_size), 1)
        self.batch_delay_seconds = max(float(batch_delay_seconds), 0.0)

    async def calculate_risk_score(self, snapshot: MarketSnapshot) -> RiskAssessment:
        """
        Ask every backend concurrently and merge whatever comes back.

        A failing backend is dropped from the merge; when all of them fail the
        rule-based fallback is returned instead, so this never raises for
        backend errors. Cancelling the caller cancels every pending call.
        """
        results = await asyncio.gather(
            *(backend.assess(snapshot) for backend in self.backends),
            return_exceptions=True,
        )

        assessments: list[RiskAssessment] = []
        labels: list[str] = []
        for backend, result in zip(self.backends, results):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                logger.warning(
                    "risk_backend_failed source=%s market_id=%s error=%s",
                    backend.label,
                    snapshot.market_id,
                    _describe_error(result),
                    extra={"market_id": snapshot.market_id},
                )
                continue
            assessments.append(result)
            labels.append(backend.label)

        if not assessments:
            logger.error(
                "risk_backends_all_failed market_id=%s backends=%s using_fallback=true",
                snapshot.market_id,
                len(self.backends),
                extra={"market_id": snapshot.market_id},
            )
            return calculate_fallback_risk(snapshot)

        combined = combine_assessments(assessments, labels)
        logger.info(
            "risk_assessment_combined market_id=%s sources=%s risk_score=%s confidence=%s",
            snapshot.market_id,
            ",".join(labels),
            combined.risk_score,
            combined.confidence,
            extra={"market_id": snapshot.market_id},
        )
        return combined

    async def batch_calculate_risk_scores(
        self, snapshots: Sequence[MarketSnapshot]
    ) -> dict[str, RiskAssessment]:
        """Assess markets in fixed-size concurrent groups with a pause between groups."""
        results: dict[str, RiskAssessment] = {}
        total = len(snapshots)
        for start in range(0, total, self.batch_size):
            batch = snapshots[start : start + self.batch_size]
            logger.debug(
                "risk_batch_dispatch start=%s size=%s total=%s",
                start,
                len(batch),
                total,
            )
            assessments = await asyncio.gather(
                *(self.calculate_risk_score(snapshot) for snapshot in batch)
            )
            for snapshot, assessment in zip(batch, assessments):
                results[snapshot.market_id] = assessment

            if start + self.batch_size < total:
                await asyncio.sleep(self.batch_delay_seconds)
        return results


def _describe_error(exc: Exception) -> str:
    message = str(exc)
    return f"{type(exc).__name__}: {message}" if message else type(exc).__name__
