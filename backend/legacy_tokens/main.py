"""Legacy Tokens: FastAPI application entry point."""

import signal
from contextlib import asynccontextmanager

# configure_structlog must run before the other legacy_tokens imports;
# structlog caches the processor chain on first use.
from legacy_tokens.core.config import get_settings as _get_settings_early
from legacy_tokens.core.logging import configure_structlog

_early_settings = _get_settings_early()
configure_structlog(
    log_level="DEBUG" if _early_settings.debug else "INFO",
    json_logs=not _early_settings.debug,
)

import structlog
from fastapi import FastAPI

from legacy_tokens import __version__
from legacy_tokens.api.errors import register_exception_handlers
from legacy_tokens.api.routes import api_router
from legacy_tokens.core.config import get_settings
from legacy_tokens.db import close_redis, init_redis
from legacy_tokens.host.chain import RedisChainHeight
from legacy_tokens.middleware.correlation import setup_correlation_middleware

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events."""
    app.state.shutting_down = False

    def handle_sigterm(signum, frame):
        app.state.shutting_down = True
        logger.info("sigterm_received", action="health_check_503_draining_connections")

    signal.signal(signal.SIGTERM, handle_sigterm)

    settings = get_settings()
    logger.info("startup_begin", app_name=settings.app_name, debug=settings.debug)

    redis = await init_redis()
    height = await RedisChainHeight(redis).current()
    logger.info("redis_initialized", chain_height=height)

    yield

    logger.info("shutdown_begin")
    await close_redis()
    logger.info("shutdown_complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="Staged, height-gated ownership transfer for legacy tokens",
        version=__version__,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_correlation_middleware(app)
    register_exception_handlers(app)
    app.include_router(api_router, prefix="/api")

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "legacy_tokens.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
