"""
FastAPI dependency injection providers.

Every shared resource is created once in the lifespan and stored on
``app.state``; these providers hand it to route handlers and turn a
missing backend into ``503 Service Unavailable``.
"""

from __future__ import annotations

from typing import Any

from fastapi import HTTPException, Request

from broker.producer import Publisher
from caching.cache import CacheManager
from caching.keys import CacheKeyBuilder
from caching.structures import Leaderboard
from guide_common.config import Settings
from monitoring.notifications.dispatcher import AlertDispatcher
from webapp.repository import UserRepository


def _require(request: Request, name: str, label: str) -> Any:
    value = getattr(request.app.state, name, None)
    if value is None:
        raise HTTPException(status_code=503, detail=f"{label} unavailable")
    return value


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_keys(request: Request) -> CacheKeyBuilder:
    return request.app.state.keys


async def get_redis(request: Request) -> Any:
    """Return the shared ``redis.asyncio.Redis`` or fail with 503."""
    return _require(request, "redis", "redis")


async def get_cache(request: Request) -> CacheManager:
    return _require(request, "cache", "cache")


async def get_leaderboard(request: Request) -> Leaderboard:
    return _require(request, "leaderboard", "leaderboard")


async def get_publisher(request: Request) -> Publisher:
    return _require(request, "publisher", "message broker")


async def get_dispatcher(request: Request) -> AlertDispatcher:
    return _require(request, "dispatcher", "alert dispatcher")


async def get_user_repository(request: Request) -> UserRepository:
    return request.app.state.users
