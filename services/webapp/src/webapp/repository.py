"""
In-memory user repository.

Stands in for the primary database in the cache-aside example: reads go
to Redis first and fall back here on a miss.
"""

from __future__ import annotations

import asyncio
from datetime import datetime

from pydantic import BaseModel, Field

from guide_common.utils import new_id, utc_now


class UserRecord(BaseModel):
    id: str = Field(default_factory=new_id)
    name: str
    email: str
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class UserRepository:
    """Async CRUD over a dict, guarded by a lock."""

    def __init__(self) -> None:
        self._users: dict[str, UserRecord] = {}
        self._lock = asyncio.Lock()
        self.reads = 0

    async def create(self, name: str, email: str) -> UserRecord:
        user = UserRecord(name=name, email=email)
        async with self._lock:
            self._users[user.id] = user
        return user

    async def get(self, user_id: str) -> UserRecord | None:
        self.reads += 1
        return self._users.get(user_id)

    async def update(self, user_id: str, **changes: str) -> UserRecord | None:
        """Apply non-``None`` *changes*; returns ``None`` for unknown users."""
        async with self._lock:
            user = self._users.get(user_id)
            if user is None:
                return None
            fields = {k: v for k, v in changes.items() if v is not None}
            updated = user.model_copy(update={**fields, "updated_at": utc_now()})
            self._users[user_id] = updated
        return updated
