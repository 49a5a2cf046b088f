"""
FastAPI application entry point for the stack guide web app.

Creates and configures the FastAPI app, registers routers, middleware,
startup/shutdown handling, and exposes the ASGI application. Run with::

    uvicorn webapp.main:app --reload
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from prometheus_client import make_asgi_app

from broker.connection import connect as broker_connect
from broker.patterns import ORDERS_EXCHANGE, orders_topology
from broker.producer import Publisher
from caching.cache import CacheManager
from caching.keys import CacheKeyBuilder, InvalidKeyError
from caching.structures import Leaderboard
from guide_common.config import Settings, get_settings
from guide_common.logging import configure_logging
from guide_common.messaging.redis_client import RedisClient
from monitoring.notifications.channels import build_channels
from monitoring.notifications.dispatcher import AlertDispatcher
from monitoring.notifications.retry import enqueue_retry
from monitoring.notifications.throttle import AlertThrottle
from monitoring.setup import init_sentry
from webapp.middleware.logging import LoggingMiddleware
from webapp.middleware.rate_limit import RateLimitMiddleware
from webapp.repository import UserRepository
from webapp.routers import debug, health, hooks, leaderboards, orders, tasks, users

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Startup / shutdown lifecycle."""
    settings: Settings = app.state.settings

    # Startup
    configure_logging(settings.log_level, settings.log_format)
    app.state.sentry_enabled = init_sentry(settings)

    redis_client = RedisClient(settings=settings)
    await redis_client.connect()
    redis = redis_client.redis
    keys = CacheKeyBuilder(settings.cache_key_prefix)
    app.state.redis_client = redis_client
    app.state.redis = redis
    app.state.keys = keys
    app.state.cache = CacheManager(redis, default_ttl=settings.cache_default_ttl, keys=keys)
    app.state.leaderboard = Leaderboard(redis, keys)

    # Lazy: no socket is opened until the first publish.
    connection = broker_connect(settings.amqp_url)
    app.state.broker = connection
    app.state.publisher = Publisher(connection, ORDERS_EXCHANGE, topology=orders_topology())

    throttle = AlertThrottle(
        redis,
        max_per_minute=settings.alert_max_per_minute,
        dedup_ttl_s=settings.alert_dedup_ttl_s,
        prefix=keys.build("alerts"),
    )
    app.state.dispatcher = AlertDispatcher(
        throttle, build_channels(settings), retry_enqueue=enqueue_retry,
    )
    app.state.users = UserRepository()
    logger.info("webapp_started", sentry=app.state.sentry_enabled)

    yield

    # Shutdown
    await app.state.dispatcher.close()
    app.state.publisher.close()
    connection.release()
    await redis_client.close()
    logger.info("webapp_stopped")


def install_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(InvalidKeyError)
    async def _invalid_key(request: Request, exc: InvalidKeyError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build and return the fully-configured FastAPI application."""
    settings = settings or get_settings()
    app = FastAPI(
        title="Backend Stack Guide",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.include_router(health.router)
    app.include_router(users.router)
    app.include_router(leaderboards.router)
    app.include_router(orders.router)
    app.include_router(tasks.router)
    app.include_router(hooks.router)
    if settings.enable_debug_routes:
        app.include_router(debug.router)

    install_exception_handlers(app)

    # Prometheus metrics endpoint
    app.mount("/metrics", make_asgi_app())

    # ── Middleware (the last one added is outermost: logging wraps rate limiting) ──
    app.add_middleware(
        RateLimitMiddleware,
        limit=settings.rate_limit,
        window=settings.rate_window,
        prefix=CacheKeyBuilder(settings.cache_key_prefix).build("rate"),
        trusted_proxies=settings.trusted_proxies,
    )
    app.add_middleware(LoggingMiddleware)

    return app


app = create_app()
