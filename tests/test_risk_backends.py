import asyncio
import json

import httpx
import pytest

from lumina.oracle.backends.base import BackendConfig
from lumina.oracle.backends.cohere import CohereBackend
from lumina.oracle.backends.gemini import GeminiBackend
from lumina.oracle.backends.grok import GrokBackend
from lumina.oracle.backends.registry import build_backends
from lumina.oracle.errors import BackendHTTPError, BackendNotConfigured, InvalidBackendResponse
from lumina.oracle.models import MarketSnapshot
from lumina.settings import Settings

ASSESSMENT_JSON = json.dumps(
    {
        "riskScore": 62,
        "premiumRate": 6.4,
        "payoutRate": 56,
        "confidence": 77,
        "factors": {"volatility": 70, "liquidity": 35, "timeDecay": 55, "marketSkew": 60},
        "reasoning": "Skewed odds and thin book.",
    }
)

SNAPSHOT = MarketSnapshot(
    market_id="btc-100k",
    question="Will BTC close above $100k this year?",
    yes_odds=80,
    no_odds=20,
    total_volume=2_500_000,
    liquidity=120_000,
    time_to_expiry=36.5,
    category="Crypto",
)


def _config(url: str, model: str, api_key: str | None = "test-key") -> BackendConfig:
    return BackendConfig(api_key=api_key, url=url, model=model, temperature=0.3, timeout_seconds=5)


def _run_with_transport(build_backend, handler):
    async def _run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            return await build_backend(client).assess(SNAPSHOT)

    return asyncio.run(_run())


def test_grok_posts_chat_completion_and_parses_reply():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        content = "Here is my assessment:\n" + ASSESSMENT_JSON
        return httpx.Response(200, json={"choices": [{"message": {"role": "assistant", "content": content}}]})

    assessment = _run_with_transport(
        lambda client: GrokBackend(_config("https://api.x.ai/v1/chat/completions", "grok-beta"), client=client),
        handler,
    )

    assert assessment.risk_score == 62
    assert assessment.factors.market_skew == 60
    request = seen[0]
    assert str(request.url) == "https://api.x.ai/v1/chat/completions"
    assert request.headers["authorization"] == "Bearer test-key"
    body = json.loads(request.content)
    assert body["model"] == "grok-beta"
    assert body["temperature"] == 0.3
    assert body["stream"] is False
    assert body["messages"][0]["role"] == "system"
    prompt = body["messages"][1]["content"]
    assert "Will BTC close above $100k this year?" in prompt
    assert "YES 80% / NO 20%" in prompt
    assert "Liquidity: $120,000" in prompt
    assert "36.5 hours" in prompt
    assert "Premium Rate (3-8%)" in prompt


def test_gemini_calls_generate_content_with_generation_config():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json={"candidates": [{"content": {"parts": [{"text": "```json\n"}, {"text": ASSESSMENT_JSON + "\n```"}]}}]},
        )

    assessment = _run_with_transport(
        lambda client: GeminiBackend(
            _config("https://generativelanguage.googleapis.com/v1beta/", "gemini-3-pro"), client=client
        ),
        handler,
    )

    assert assessment.confidence == 77
    request = seen[0]
    assert request.url.path == "/v1beta/models/gemini-3-pro:generateContent"
    assert request.headers["x-goog-api-key"] == "test-key"
    body = json.loads(request.content)
    assert body["generationConfig"] == {"temperature": 0.3, "topP": 0.8, "topK": 40}
    prompt = body["contents"][0]["parts"][0]["text"]
    assert "0-30: Low risk" in prompt


def test_cohere_sends_message_and_preamble():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"text": ASSESSMENT_JSON, "generation_id": "g1"})

    assessment = _run_with_transport(
        lambda client: CohereBackend(_config("https://api.cohere.ai/v1/chat", "command-r"), client=client),
        handler,
    )

    assert assessment.payout_rate == 56
    body = json.loads(seen[0].content)
    assert body["model"] == "command-r"
    assert "valid JSON" in body["preamble"]
    assert "Market Details" in body["message"]


def test_non_success_status_raises_http_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, json={"error": "overloaded"})

    with pytest.raises(BackendHTTPError) as excinfo:
        _run_with_transport(
            lambda client: GrokBackend(_config("https://api.x.ai/v1/chat/completions", "grok-beta"), client=client),
            handler,
        )
    assert excinfo.value.status_code == 503
    assert excinfo.value.source == "Grok"


def test_reply_without_json_raises_invalid_response():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"text": "I am unable to evaluate this market."})

    with pytest.raises(InvalidBackendResponse):
        _run_with_transport(
            lambda client: CohereBackend(_config("https://api.cohere.ai/v1/chat", "command-r"), client=client),
            handler,
        )


def test_unexpected_reply_shape_raises_invalid_response():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"choices": []})

    with pytest.raises(InvalidBackendResponse):
        _run_with_transport(
            lambda client: GrokBackend(_config("https://api.x.ai/v1/chat/completions", "grok-beta"), client=client),
            handler,
        )


def test_missing_api_key_fails_without_network_call():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, json={"text": ASSESSMENT_JSON})

    with pytest.raises(BackendNotConfigured):
        _run_with_transport(
            lambda client: CohereBackend(
                _config("https://api.cohere.ai/v1/chat", "command-r", api_key=None), client=client
            ),
            handler,
        )
    assert calls == []


def test_transport_errors_propagate():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(httpx.ConnectError):
        _run_with_transport(
            lambda client: GrokBackend(_config("https://api.x.ai/v1/chat/completions", "grok-beta"), client=client),
            handler,
        )


def test_build_backends_uses_settings_in_dispatch_order():
    settings = Settings(
        GEMINI_API_KEY="g-key",
        XAI_API_KEY="x-key",
        COHERE_API_KEY="c-key",
        RISK_LLM_TEMPERATURE=0.3,
        XAI_MODEL="grok-2",
    )
    backends = build_backends(settings)
    assert [backend.label for backend in backends] == ["Gemini 3 Pro", "Grok", "Cohere"]
    assert backends[0].config.api_key == "g-key"
    assert backends[1].config.model == "grok-2"
    assert all(backend.config.temperature == 0.3 for backend in backends)


def test_failed_backend_call_is_logged_with_market_and_without_query(caplog):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, json={"error": "overloaded"})

    with caplog.at_level("WARNING", logger="lumina.http"):
        with pytest.raises(BackendHTTPError):
            _run_with_transport(
                lambda client: GrokBackend(
                    _config("https://api.x.ai/v1/chat/completions?key=secret", "grok-beta"), client=client
                ),
                handler,
            )

    record = next(r for r in caplog.records if r.getMessage().startswith("upstream_call_failed"))
    message = record.getMessage()
    assert "upstream=Grok" in message
    assert "market_id=btc-100k" in message
    assert "status=503" in message
    assert "path=/v1/chat/completions" in message
    assert "secret" not in message
    assert record.market_id == "btc-100k"
