"""Trade Intel FastAPI application factory."""

import logging
import os
from contextlib import asynccontextmanager

import redis.asyncio as aioredis
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from prometheus_fastapi_instrumentator import Instrumentator
from sqlalchemy import text

from tradeintel.config import Settings, get_settings
from tradeintel.dependencies import get_session_factory, init_db, shutdown_db
from tradeintel.exceptions import TradeIntelError
from tradeintel.middleware.error_handler import ErrorHandlerMiddleware
from tradeintel.middleware.logging import LoggingMiddleware, redact_pii, setup_logging
from tradeintel.middleware.rate_limit import RateLimitMiddleware
from tradeintel.routers import chat, listings, notifications, processing, review, webhook, ws
from tradeintel.services.processing_pool import ProcessingPool
from tradeintel.services.ws_manager import ws_manager

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: startup and shutdown."""
    settings = get_settings()
    setup_logging(debug=settings.debug)
    logger.info("Starting Trade Intel API (env=%s)", settings.app_env)

    init_db(settings)
    app.state.processing_pool.start()
    try:
        await ws_manager.start()
    except Exception as e:
        logger.error("WebSocket manager could not start (real-time events disabled): %s", e)

    yield

    await app.state.processing_pool.stop()
    await ws_manager.stop()
    await shutdown_db()
    logger.info("Trade Intel API shutting down")


async def trade_intel_error_handler(request: Request, exc: TradeIntelError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("Upstream failure on %s: %s", request.url.path, redact_pii(str(exc)))
    return JSONResponse(status_code=exc.status_code, content={"detail": str(exc)})


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    if settings is None:
        settings = get_settings()

    app = FastAPI(
        title="Trade Intel",
        description="Structured trade listings extracted from chat groups, with review, alerts and an AI assistant",
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.processing_pool = ProcessingPool(
        size=settings.processing_pool_size,
        capacity=settings.processing_queue_capacity,
    )
    app.add_exception_handler(TradeIntelError, trade_intel_error_handler)

    # Middleware (each add wraps the previous ones: innermost first)
    app.add_middleware(ErrorHandlerMiddleware, debug=settings.debug)
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(RateLimitMiddleware, settings=settings)
    origins = settings.cors_origins
    allow_all = origins == ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins if not allow_all else [],
        allow_origin_regex=r".*" if allow_all else None,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "Accept"],
        max_age=600,
    )

    # Routers
    prefix = settings.api_prefix
    app.include_router(webhook.router, prefix=prefix)
    app.include_router(listings.router, prefix=prefix)
    app.include_router(review.router, prefix=prefix)
    app.include_router(notifications.router, prefix=prefix)
    app.include_router(chat.router, prefix=prefix)
    app.include_router(processing.router, prefix=prefix)
    app.include_router(ws.router)

    @app.get("/")
    async def root():
        return {"status": "running", "service": "tradeintel-api", "version": "1.0.0"}

    @app.get("/health")
    async def health():
        return {"status": "ok", "service": "tradeintel-api"}

    @app.get("/health/ready")
    async def health_ready():
        """Deep health check: verifies DB and Redis connectivity."""
        checks: dict = {}

        # Check PostgreSQL
        try:
            factory = get_session_factory()
            async with factory() as session:
                await session.execute(text("SELECT 1"))
            checks["database"] = "ok"
        except Exception as e:
            checks["database"] = f"error: {type(e).__name__}"

        # Check Redis
        try:
            r = aioredis.from_url(settings.redis_url, decode_responses=True)
            await r.ping()
            await r.aclose()
            checks["redis"] = "ok"
        except Exception as e:
            checks["redis"] = f"error: {type(e).__name__}"

        all_ok = all(v == "ok" for v in checks.values())
        return JSONResponse(
            status_code=200 if all_ok else 503,
            content={"status": "ready" if all_ok else "degraded", "checks": checks},
        )

    # Prometheus instrumentation
    instrumentator = Instrumentator(
        excluded_handlers=["/health", "/health/ready", "/docs", "/redoc", "/openapi.json", "/metrics"],
    )
    instrumentator.instrument(app)

    @app.get("/metrics", include_in_schema=False)
    async def metrics():
        """Prometheus metrics endpoint with multiprocess support."""
        from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, generate_latest, multiprocess

        multiproc_dir = os.environ.get("PROMETHEUS_MULTIPROC_DIR")
        if multiproc_dir:
            registry = CollectorRegistry()
            multiprocess.MultiProcessCollector(registry)
            data = generate_latest(registry)
        else:
            data = generate_latest()

        return Response(content=data, media_type=CONTENT_TYPE_LATEST)

    return app


# Default app instance for uvicorn
app = create_app()
