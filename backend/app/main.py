"""
Class Booking API - Main Application Entry Point

A booking engine for classes and multi-session courses demonstrating:
- Capacity reservation across session sets with compensating rollback
- Discount codes as a second scarce resource
- Idempotent payment webhooks and a background expiry reaper
- Redis availability caching and structured logging with request correlation
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.errors import register_exception_handlers
from app.api.middleware import RequestLoggingMiddleware
from app.api.router import api_router
from app.core.config import Settings, get_settings
from app.core.logging import get_logger, setup_logging
from app.core.metrics import metrics_endpoint
from app.db.session import create_engine, create_session_factory
from app.infrastructure.redis_client import close_redis, create_redis
from app.infrastructure.stripe_gateway import StripePaymentGateway
from app.services.cache_service import AvailabilityCache
from app.services.container import build_container
from app.stores.demo import seed_demo_catalog
from app.stores.memory_store import InMemoryStore
from app.stores.sqlalchemy_store import SQLAlchemyStore


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifecycle: startup and shutdown hooks."""
        setup_logging(settings)
        logger = get_logger(__name__)

        logger.info(
            "application_starting",
            app=settings.APP_NAME,
            version=settings.APP_VERSION,
            environment=settings.ENVIRONMENT,
            store=settings.STORE_BACKEND,
        )

        engine = None
        if settings.STORE_BACKEND == "sqlalchemy":
            engine = create_engine(settings)
            store = SQLAlchemyStore(create_session_factory(engine))
        else:
            store = seed_demo_catalog(InMemoryStore())

        # Initialize Redis connection
        redis_client = await create_redis(settings)
        if redis_client:
            logger.info("redis_ready")
        else:
            logger.warning("redis_unavailable", message="Running without cache")

        container = build_container(
            settings,
            store,
            StripePaymentGateway.from_settings(settings),
            cache=AvailabilityCache(redis_client, settings.AVAILABILITY_CACHE_TTL),
        )
        app.state.container = container

        if settings.REAPER_ENABLED:
            container.reaper.start()

        yield

        # Cleanup
        await container.reaper.stop()
        await close_redis(redis_client)
        if engine is not None:
            await engine.dispose()
        logger.info("application_shutdown")

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="Class and course booking API with concurrency-safe reservations",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Restrict in production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Custom middleware
    app.add_middleware(RequestLoggingMiddleware)

    register_exception_handlers(app)
    app.include_router(api_router)

    @app.get("/health", tags=["Health"])
    async def health_check():
        """Health check endpoint for Docker and load balancers."""
        container = getattr(app.state, "container", None)
        cache_stats = await container.cache.stats() if container else {"status": "disabled"}
        return {
            "status": "healthy",
            "version": settings.APP_VERSION,
            "environment": settings.ENVIRONMENT,
            "cache": cache_stats,
        }

    @app.get("/metrics", tags=["Health"], include_in_schema=False)
    def metrics():
        return metrics_endpoint()

    return app


app = create_app()
