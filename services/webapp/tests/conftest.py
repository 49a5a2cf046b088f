"""Shared fixtures for web app tests."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from caching.cache import CacheManager
from caching.keys import CacheKeyBuilder
from caching.structures import Leaderboard
from guide_common.config import Settings
from webapp.main import install_exception_handlers
from webapp.repository import UserRepository
from webapp.routers import debug, health, hooks, leaderboards, orders, tasks, users

WEBHOOK_SECRET = "s3cr3t"


@pytest.fixture()
def settings() -> Settings:
    return Settings(
        sentry_webhook_secret=WEBHOOK_SECRET,
        cache_key_prefix="test",
        enable_debug_routes=True,
    )


@pytest.fixture()
def mock_redis_client() -> AsyncMock:
    redis = AsyncMock()
    redis.get = AsyncMock(return_value=None)
    redis.set = AsyncMock(return_value=True)
    redis.delete = AsyncMock(return_value=1)
    redis.hset = AsyncMock(return_value=5)
    redis.ping = AsyncMock(return_value=True)
    return redis


@pytest.fixture()
def mock_publisher() -> MagicMock:
    publisher = MagicMock()
    publisher.publish = MagicMock(return_value="msg-1")
    return publisher


@pytest.fixture()
def mock_dispatcher() -> AsyncMock:
    dispatcher = AsyncMock()

    async def _dispatch(alert):
        alert.delivered_to = ["slack"]
        return True

    dispatcher.dispatch = AsyncMock(side_effect=_dispatch)
    return dispatcher


def _build_app(
    settings: Settings,
    redis: AsyncMock,
    publisher: MagicMock,
    dispatcher: AsyncMock,
) -> FastAPI:
    """Build a FastAPI app with the routers and pre-populated state, no lifespan."""
    app = FastAPI()
    keys = CacheKeyBuilder(settings.cache_key_prefix)

    app.state.settings = settings
    app.state.keys = keys
    app.state.redis = redis
    app.state.cache = CacheManager(redis, default_ttl=60, keys=keys)
    app.state.leaderboard = Leaderboard(redis, keys)
    app.state.publisher = publisher
    app.state.dispatcher = dispatcher
    app.state.users = UserRepository()
    app.state.broker = None
    app.state.sentry_enabled = False

    for module in (health, users, leaderboards, orders, tasks, hooks, debug):
        app.include_router(module.router)
    install_exception_handlers(app)
    return app


@pytest.fixture()
def app(
    settings: Settings,
    mock_redis_client: AsyncMock,
    mock_publisher: MagicMock,
    mock_dispatcher: AsyncMock,
) -> FastAPI:
    return _build_app(settings, mock_redis_client, mock_publisher, mock_dispatcher)


@pytest.fixture()
def client(app: FastAPI) -> TestClient:
    return TestClient(app)
