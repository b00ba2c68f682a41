from datetime import datetime, timedelta, timezone

import httpx
import pytest
from fastapi.testclient import TestClient

from lumina.cache import InMemoryAssessmentCache
from lumina.deps import get_polymarket_client, get_risk_oracle_service
from lumina.main import app
from lumina.oracle.aggregator import RiskAggregator
from lumina.oracle.errors import BackendHTTPError
from lumina.oracle.fallback import FALLBACK_REASONING
from lumina.oracle.models import RiskAssessment, RiskFactors
from lumina.oracle.service import RiskOracleService
from lumina.polymarket.schemas import PolymarketEvent


class StaticBackend:
    label = "Grok"

    def __init__(self, error: Exception | None = None):
        self.error = error
        self.seen = []

    async def assess(self, snapshot):
        self.seen.append(snapshot)
        if self.error is not None:
            raise self.error
        return RiskAssessment(
            risk_score=42,
            premium_rate=4.8,
            payout_rate=49.5,
            confidence=80,
            factors=RiskFactors(volatility=30, liquidity=60, time_decay=25, market_skew=30),
            reasoning="Thin book, balanced odds.",
        )


class FakeFeed:
    def __init__(self, events=None, error: Exception | None = None):
        self.events = events or []
        self.error = error
        self.requested_limits = []

    async def fetch_events(self, limit=None):
        self.requested_limits.append(limit)
        if self.error is not None:
            raise self.error
        return list(self.events)

    async def fetch_event(self, event_id):
        if self.error is not None:
            raise self.error
        return next((event for event in self.events if event.event_id == event_id), None)


class ExplodingService:
    async def get_cached(self, market_id):
        return None

    async def assess(self, snapshot, *, supersede=False):
        raise RuntimeError("unexpected failure")

    async def assess_batch(self, snapshots):
        raise RuntimeError("unexpected failure")


def _market(market_id: str = "m1", **overrides) -> dict:
    body = {
        "marketId": market_id,
        "question": "Will the bill pass the senate?",
        "yesOdds": 62,
        "noOdds": 38,
        "totalVolume": 150000,
        "liquidity": 20000,
        "timeToExpiry": 240,
        "category": "Politics",
    }
    body.update(overrides)
    return body


def _event(event_id: str, category: str = "Politics", active: bool = True) -> PolymarketEvent:
    return PolymarketEvent(
        event_id=event_id,
        title=f"Event {event_id}",
        category=category,
        p_yes=0.7,
        p_no=0.3,
        volume=10_000,
        liquidity=2_500,
        end_date=datetime.now(timezone.utc) + timedelta(days=2),
        active=active,
    )


@pytest.fixture()
def backend():
    return StaticBackend()


@pytest.fixture()
def feed():
    return FakeFeed()


@pytest.fixture()
def client(backend, feed):
    service = RiskOracleService(
        RiskAggregator([backend], batch_delay_seconds=0),
        InMemoryAssessmentCache(),
    )
    app.dependency_overrides[get_risk_oracle_service] = lambda: service
    app.dependency_overrides[get_polymarket_client] = lambda: feed
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def test_health_ok(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"ok": True}


def test_single_market_returns_assessment(client, backend):
    response = client.post("/risk-oracle", json=_market())

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assessment = body["assessment"]
    assert assessment["riskScore"] == 42
    assert assessment["premiumRate"] == 4.8
    assert assessment["payoutRate"] == 49.5
    assert assessment["confidence"] == 80
    assert assessment["factors"] == {"volatility": 30, "liquidity": 60, "timeDecay": 25, "marketSkew": 30}
    assert assessment["reasoning"] == "Combined analysis from Grok (1 AI)"
    assert backend.seen[0].market_id == "m1"
    assert backend.seen[0].category == "Politics"


def test_repeated_single_request_is_served_from_cache(client, backend):
    first = client.post("/risk-oracle", json=_market())
    second = client.post("/risk-oracle", json=_market())

    assert first.json() == second.json()
    assert len(backend.seen) == 1


def test_batch_returns_assessments_keyed_by_market(client, backend):
    response = client.post("/risk-oracle", json={"markets": [_market("a"), _market("b"), _market("c")]})

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert list(body["assessments"]) == ["a", "b", "c"]
    assert body["assessments"]["b"]["riskScore"] == 42
    assert [snapshot.market_id for snapshot in backend.seen] == ["a", "b", "c"]


def test_empty_batch_returns_empty_map(client):
    response = client.post("/risk-oracle", json={"markets": []})
    assert response.status_code == 200
    assert response.json() == {"success": True, "assessments": {}}


def test_numeric_market_id_is_accepted(client, backend):
    response = client.post("/risk-oracle", json=_market(market_id=12345))
    assert response.status_code == 200
    assert backend.seen[0].market_id == "12345"


def test_negative_time_to_expiry_is_clamped(client, backend):
    response = client.post("/risk-oracle", json=_market(timeToExpiry=-12))
    assert response.status_code == 200
    assert backend.seen[0].time_to_expiry == 0


@pytest.mark.parametrize(
    "payload",
    [
        {},
        {"question": "Missing id"},
        {"markets": "not-a-list"},
        {"marketId": "m1", "question": "No odds"},
        _market(yesOdds=140),
        {"markets": [_market("a"), {"marketId": "b"}]},
        {"markets": [_market("a"), "b"]},
        [_market()],
    ],
)
def test_malformed_requests_return_400(client, backend, payload):
    response = client.post("/risk-oracle", json=payload)

    assert response.status_code == 400
    assert response.json() == {"success": False, "error": "Invalid request format"}
    assert backend.seen == []


def test_invalid_json_body_returns_400(client):
    response = client.post(
        "/risk-oracle",
        content=b"{not json",
        headers={"content-type": "application/json"},
    )
    assert response.status_code == 400
    assert response.json()["error"] == "Invalid request format"


def test_backend_failures_fall_back_instead_of_erroring(client, backend):
    backend.error = BackendHTTPError("Grok", 500)

    response = client.post("/risk-oracle", json=_market())

    assert response.status_code == 200
    assessment = response.json()["assessment"]
    assert assessment["confidence"] == 70
    assert assessment["reasoning"] == FALLBACK_REASONING


def test_unexpected_service_error_returns_500(client):
    app.dependency_overrides[get_risk_oracle_service] = lambda: ExplodingService()

    single = client.post("/risk-oracle", json=_market())
    batch = client.post("/risk-oracle", json={"markets": [_market()]})

    for response in (single, batch):
        assert response.status_code == 500
        assert response.json() == {"success": False, "error": "Failed to calculate risk"}


def test_markets_feed_assesses_active_events(client, feed, backend):
    feed.events = [_event("e1"), _event("e2", active=False), _event("e3", category="Crypto")]

    response = client.get("/risk-oracle/markets", params={"limit": 500})

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert [market["id"] for market in body["markets"]] == ["e1", "e3"]
    assert body["markets"][0]["yesPrice"] == 0.7
    assert body["markets"][0]["assessment"]["riskScore"] == 42
    assert feed.requested_limits == [100]
    assert backend.seen[0].yes_odds == 70


def test_markets_feed_filters_by_category(client, feed):
    feed.events = [_event("e1"), _event("e3", category="Crypto")]

    response = client.get("/risk-oracle/markets", params={"category": "crypto"})

    assert [market["id"] for market in response.json()["markets"]] == ["e3"]


def test_markets_feed_error_returns_502(client, feed):
    feed.error = httpx.ConnectError("gamma unreachable")

    response = client.get("/risk-oracle/markets")

    assert response.status_code == 502
    assert response.json() == {"success": False, "error": "Failed to fetch markets"}


def test_single_market_lookup(client, feed):
    feed.events = [_event("e1")]

    found = client.get("/risk-oracle/markets/e1")
    missing = client.get("/risk-oracle/markets/nope")

    assert found.status_code == 200
    assert found.json()["market"]["title"] == "Event e1"
    assert found.json()["market"]["assessment"]["riskScore"] == 42
    assert missing.status_code == 404
    assert missing.json()["error"] == "market_not_found"


def test_empty_markets_list_with_market_id_is_an_empty_batch(client, backend):
    response = client.post("/risk-oracle", json={"marketId": "m1", "markets": []})

    assert response.status_code == 200
    assert response.json() == {"success": True, "assessments": {}}
    assert backend.seen == []


def test_explicit_null_markets_stays_single_mode(client):
    response = client.post("/risk-oracle", json={**_market(), "markets": None})

    assert response.status_code == 200
    assert response.json()["assessment"]["riskScore"] == 42


def test_request_log_reports_market_count_and_cache_outcome(client, caplog):
    with caplog.at_level("INFO", logger="lumina.http"):
        first = client.post("/risk-oracle", json=_market())
        second = client.post("/risk-oracle", json=_market())
        client.post("/risk-oracle", json={"markets": [_market("a"), _market("b"), _market("c")]})

    assert first.headers["X-Risk-Cache"] == "miss"
    assert second.headers["X-Risk-Cache"] == "hit"
    lines = [record.getMessage() for record in caplog.records if record.getMessage().startswith("oracle_request")]
    assert "markets=1 cache=miss" in lines[0]
    assert "markets=1 cache=hit" in lines[1]
    assert "markets=3 cache=none" in lines[2]
    assert all("path=/risk-oracle" in line for line in lines)
