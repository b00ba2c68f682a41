from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api.router import api_router
from .logging import configure_logging
from .request_logging import RequestLoggingMiddleware
from .settings import settings

configure_logging()

DISCLAIMER = (
    "AI-assisted risk estimates for prediction market coverage. "
    "Not financial advice. Premiums and payouts are settled on-chain, not here."
)

app = FastAPI(
    title="Lumina Risk Oracle",
    description=DISCLAIMER,
)

app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router)
