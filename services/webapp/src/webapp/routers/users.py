"""
User API router.

Demonstrates cache-aside reads (``X-Cache: hit|miss``), invalidation on
write, and a welcome e-mail queued as a Celery task on sign-up.
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, HTTPException, Response
from kombu.exceptions import OperationalError
from starlette.concurrency import run_in_threadpool

from caching.cache import CacheManager
from caching.keys import CacheKeyBuilder
from monitoring.context import breadcrumb
from taskqueue.tasks import send_welcome_email
from webapp.dependencies import get_cache, get_keys, get_user_repository
from webapp.repository import UserRepository
from webapp.schemas.user_schemas import (
    UserCreateRequest,
    UserCreateResponse,
    UserResponse,
    UserUpdateRequest,
)

logger = structlog.get_logger()

router = APIRouter(prefix="/users", tags=["users"])


@router.post("", status_code=201, response_model=UserCreateResponse)
async def create_user(
    body: UserCreateRequest,
    users: UserRepository = Depends(get_user_repository),
) -> UserCreateResponse:
    user = await users.create(body.name, body.email)
    breadcrumb("user created", category="users", user_id=user.id)

    task_id = None
    try:
        result = await run_in_threadpool(send_welcome_email.delay, user.id, user.email)
        task_id = result.id
    except OperationalError as exc:
        # The account exists either way; the mail can be re-sent later.
        logger.warning("welcome_email_enqueue_failed", user_id=user.id, error=str(exc))
    return UserCreateResponse(**user.model_dump(), welcome_task_id=task_id)


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: str,
    response: Response,
    cache: CacheManager = Depends(get_cache),
    keys: CacheKeyBuilder = Depends(get_keys),
    users: UserRepository = Depends(get_user_repository),
) -> UserResponse:
    key = keys.build("user", user_id)
    cached = await cache.get(key)
    if cached is not None:
        response.headers["X-Cache"] = "hit"
        return UserResponse(**cached)

    user = await users.get(user_id)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    await cache.set(key, user.model_dump(mode="json"))
    response.headers["X-Cache"] = "miss"
    return UserResponse(**user.model_dump())


@router.put("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: str,
    body: UserUpdateRequest,
    cache: CacheManager = Depends(get_cache),
    keys: CacheKeyBuilder = Depends(get_keys),
    users: UserRepository = Depends(get_user_repository),
) -> UserResponse:
    user = await users.update(user_id, name=body.name, email=body.email)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    # Invalidate after the write so the next read repopulates the cache.
    await cache.delete(keys.build("user", user_id))
    return UserResponse(**user.model_dump())
