from fastapi import APIRouter

from legacy_tokens.api.routes import chain, health, tokens

api_router = APIRouter()

api_router.include_router(health.router, tags=["health"])
api_router.include_router(tokens.router, prefix="/tokens", tags=["tokens"])
api_router.include_router(chain.router, prefix="/chain", tags=["chain"])
