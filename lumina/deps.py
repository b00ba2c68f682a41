from functools import lru_cache

from .cache import build_assessment_cache
from .oracle.aggregator import RiskAggregator
from .oracle.backends.registry import build_backends
from .oracle.service import RiskOracleService
from .polymarket.client import PolymarketClient
from .settings import settings


def build_risk_aggregator() -> RiskAggregator:
    return RiskAggregator(
        build_backends(settings),
        batch_size=settings.RISK_BATCH_SIZE,
        batch_delay_seconds=settings.RISK_BATCH_DELAY_SECONDS,
    )


@lru_cache()
def get_risk_oracle_service() -> RiskOracleService:
    return RiskOracleService(
        build_risk_aggregator(),
        build_assessment_cache(settings),
        ttl_seconds=settings.RISK_CACHE_TTL_SECONDS,
    )


@lru_cache()
def get_polymarket_client() -> PolymarketClient:
    return PolymarketClient(settings.POLYMARKET_BASE_URL)
