"""Games API: score submission (with achievement checks) and leaderboards."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from komoru.achievements.pipeline import EvaluationPipeline
from komoru.config import get_settings
from komoru.dependencies import get_current_user_id, get_db, get_pipeline
from komoru.games.schemas import LeaderboardResponse, ScoreSubmitRequest, ScoreSubmitResponse
from komoru.games.service import VALID_GAME_IDS, ensure_user, get_leaderboard, save_score
from komoru.middleware.rate_limit import score_rate_limit

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/games", tags=["Games"])


def _check_game(game_id: str) -> str:
    if game_id not in VALID_GAME_IDS:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Unknown game: {game_id}")
    return game_id


@router.post(
    "/{game_id}/scores",
    response_model=ScoreSubmitResponse,
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(score_rate_limit)],
)
async def submit_score(
    game_id: str,
    body: ScoreSubmitRequest,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    pipeline: EvaluationPipeline = Depends(get_pipeline),
):
    """Save a finished game's score, then check achievements.

    The score is committed before achievements are evaluated; the pipeline
    never raises, so achievement problems cannot fail the save.
    """
    _check_game(game_id)

    await ensure_user(db, user_id, body.username)
    row = await save_score(db, user_id, game_id, body.score)
    # Read before the pipeline runs; its rollbacks expire loaded rows.
    response = ScoreSubmitResponse(id=row.id, game_id=row.game_id, score=row.score, created_at=row.created_at)

    unlocked = await pipeline.check_achievements(db, user_id, game_id, body.score, body.metadata)
    response.achievements = unlocked or None
    return response


@router.get("/{game_id}/leaderboard", response_model=LeaderboardResponse)
async def leaderboard(
    game_id: str,
    limit: int | None = Query(default=None, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    """Best score per player for one game."""
    _check_game(game_id)
    entries = await get_leaderboard(db, game_id, limit or get_settings().leaderboard_default_limit)
    return LeaderboardResponse(game_id=game_id, entries=entries)
