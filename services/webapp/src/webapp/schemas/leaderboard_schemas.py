"""Leaderboard API schemas."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class ScoreRequest(BaseModel):
    member: str = Field(..., min_length=1, max_length=100)
    score: float
    increment: bool = Field(default=False, description="Add to the current score instead of replacing it.")


class StandingResponse(BaseModel):
    member: str
    score: float
    rank: Optional[int] = None


class LeaderboardResponse(BaseModel):
    board: str
    entries: list[StandingResponse]
