import httpx

from ...settings import Settings
from .base import BackendConfig, RiskBackend
from .cohere import CohereBackend
from .gemini import GeminiBackend
from .grok import GrokBackend


def build_backends(settings: Settings, *, client: httpx.AsyncClient | None = None) -> list[RiskBackend]:
    """Backends in dispatch order; the order also fixes the combined reasoning label order."""
    temperature = settings.RISK_LLM_TEMPERATURE
    timeout = settings.RISK_BACKEND_TIMEOUT_SECONDS
    return [
        GeminiBackend(
            BackendConfig(
                api_key=settings.GEMINI_API_KEY,
                url=settings.GEMINI_API_BASE,
                model=settings.GEMINI_MODEL,
                temperature=temperature,
                timeout_seconds=timeout,
            ),
            client=client,
        ),
        GrokBackend(
            BackendConfig(
                api_key=settings.XAI_API_KEY,
                url=settings.XAI_API_URL,
                model=settings.XAI_MODEL,
                temperature=temperature,
                timeout_seconds=timeout,
            ),
            client=client,
        ),
        CohereBackend(
            BackendConfig(
                api_key=settings.COHERE_API_KEY,
                url=settings.COHERE_API_URL,
                model=settings.COHERE_MODEL,
                temperature=temperature,
                timeout_seconds=timeout,
            ),
            client=client,
        ),
    ]
