from fastapi import APIRouter

from .routes import health, markets, risk_oracle

api_router = APIRouter()
api_router.include_router(health.router)
api_router.include_router(risk_oracle.router)
api_router.include_router(markets.router)
