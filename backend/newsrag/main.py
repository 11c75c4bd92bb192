"""News RAG Chat Backend - FastAPI Entry Point."""
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from functools import partial

import structlog
from fastapi import FastAPI

from newsrag.api import websocket as ws_router
from newsrag.api.v1 import chat as chat_router
from newsrag.api.v1 import news as news_router
from newsrag.config import settings
from newsrag.middleware.cors import setup_cors
from newsrag.middleware.error_handler import setup_error_handlers
from newsrag.middleware.logging_middleware import LoggingMiddleware
from newsrag.services.container import Services, ServicesBuilder, build_services

logger = structlog.get_logger()


def _init_sentry() -> None:
    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration

    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        integrations=[FastApiIntegration()],
        traces_sample_rate=0.1 if settings.APP_ENV == "production" else 1.0,
        environment=settings.APP_ENV,
    )


def _lifespan(build: ServicesBuilder):
    @asynccontextmanager
    async def lifespan(application: FastAPI) -> AsyncIterator[None]:
        logging.basicConfig(level=settings.LOG_LEVEL)
        logger.info("startup", env=settings.APP_ENV)
        if settings.SENTRY_DSN:
            _init_sentry()

        services: Services | None = getattr(application.state, "services", None)
        owned = services is None
        if owned:
            services = await build()
            application.state.services = services
        await services.transport.start()

        yield

        # Shutdown: close sockets, then the cache and engine if we built them
        await services.transport.stop()
        if owned:
            await services.aclose()
        logger.info("shutdown")

    return lifespan


def create_app(services: Services | None = None, build: ServicesBuilder | None = None) -> FastAPI:
    """Build the application.

    ``services`` wires an already-built service graph (the caller owns it);
    otherwise ``build`` (default: from settings) runs on startup.
    """
    application = FastAPI(
        title="News RAG Chat API",
        description="Retrieval-augmented chat over a news corpus",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=_lifespan(build or partial(build_services, settings)),
    )
    if services is not None:
        application.state.services = services

    # Middleware (order matters: last added = first executed)
    setup_cors(application, settings.CORS_ALLOWED_ORIGINS)
    setup_error_handlers(application)
    application.add_middleware(LoggingMiddleware)

    # API Routers
    application.include_router(news_router.router, prefix="/api/news", tags=["News"])
    application.include_router(chat_router.router, prefix="/api/chat", tags=["Chat"])
    application.include_router(ws_router.router, tags=["WebSocket"])

    # Health check
    @application.get("/health", tags=["health"])
    async def health_check() -> dict[str, str]:
        return {"status": "ok"}

    return application


app = create_app()
