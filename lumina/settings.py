from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        enable_decoding=False,
    )

    ENV: str = "dev"
    REDIS_URL: str = "redis://localhost:6379/0"
    CORS_ALLOW_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    RISK_CACHE_BACKEND: str = "memory"
    RISK_CACHE_TTL_SECONDS: int = 300
    RISK_CACHE_SOCKET_TIMEOUT_SECONDS: float = 1.0
    RISK_BATCH_SIZE: int = 5
    RISK_BATCH_DELAY_SECONDS: float = 1.0
    RISK_LLM_TEMPERATURE: float = 0.3
    RISK_BACKEND_TIMEOUT_SECONDS: float = 30.0

    GEMINI_API_KEY: str | None = None
    GEMINI_API_BASE: str = "https://generativelanguage.googleapis.com/v1beta"
    GEMINI_MODEL: str = "gemini-3-pro"
    XAI_API_KEY: str | None = None
    XAI_API_URL: str = "https://api.x.ai/v1/chat/completions"
    XAI_MODEL: str = "grok-beta"
    COHERE_API_KEY: str | None = None
    COHERE_API_URL: str = "https://api.cohere.ai/v1/chat"
    COHERE_MODEL: str = "command-r"

    POLYMARKET_BASE_URL: str = "https://gamma-api.polymarket.com"
    POLY_PAGE_LIMIT: int = 20

    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True
    HTTPX_SLOW_REQUEST_THRESHOLD_SECONDS: float = 2.0

    @field_validator("CORS_ALLOW_ORIGINS", mode="before")
    @classmethod
    def _split_origins(cls, value):
        if value is None:
            return value
        if isinstance(value, str):
            parts = [part.strip() for part in value.split(",") if part.strip()]
            return parts
        return value

    @field_validator("GEMINI_API_KEY", "XAI_API_KEY", "COHERE_API_KEY", mode="before")
    @classmethod
    def _empty_str_to_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("RISK_CACHE_BACKEND", mode="before")
    @classmethod
    def _normalize_cache_backend(cls, value):
        if value is None:
            return "memory"
        return str(value).strip().lower() or "memory"

settings = Settings()
