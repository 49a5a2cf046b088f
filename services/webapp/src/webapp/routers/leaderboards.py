"""Leaderboard API router backed by a Redis sorted set."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query

from caching.structures import Leaderboard
from webapp.dependencies import get_leaderboard
from webapp.schemas.leaderboard_schemas import (
    LeaderboardResponse,
    ScoreRequest,
    StandingResponse,
)

router = APIRouter(prefix="/leaderboards", tags=["leaderboards"])


@router.post("/{board}/scores", response_model=StandingResponse)
async def submit_score(
    board: str,
    body: ScoreRequest,
    leaderboard: Leaderboard = Depends(get_leaderboard),
) -> StandingResponse:
    if body.increment:
        score = await leaderboard.increment(board, body.member, body.score)
    else:
        await leaderboard.add_score(board, body.member, body.score)
        score = body.score
    rank = await leaderboard.rank(board, body.member)
    return StandingResponse(member=body.member, score=score, rank=rank)


@router.get("/{board}", response_model=LeaderboardResponse)
async def top_scores(
    board: str,
    limit: int = Query(default=10, ge=1, le=100),
    leaderboard: Leaderboard = Depends(get_leaderboard),
) -> LeaderboardResponse:
    entries = await leaderboard.top(board, limit)
    return LeaderboardResponse(
        board=board,
        entries=[StandingResponse(member=e.member, score=e.score, rank=e.rank) for e in entries],
    )


@router.get("/{board}/members/{member}", response_model=StandingResponse)
async def member_standing(
    board: str,
    member: str,
    leaderboard: Leaderboard = Depends(get_leaderboard),
) -> StandingResponse:
    score = await leaderboard.score(board, member)
    if score is None:
        raise HTTPException(status_code=404, detail="Member not on this leaderboard")
    return StandingResponse(member=member, score=score, rank=await leaderboard.rank(board, member))
