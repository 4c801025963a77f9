"""Achievement API endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from komoru.achievements.schemas import (
    AchievementStatsResponse,
    RecentUnlocksResponse,
    UserAchievementsResponse,
)
from komoru.achievements.service import (
    get_achievement_stats,
    get_recent_unlocks,
    get_user_achievements,
)
from komoru.config import get_settings
from komoru.dependencies import get_current_user_id, get_db

router = APIRouter(prefix="/api/achievements", tags=["Achievements"])


@router.get("", response_model=UserAchievementsResponse)
async def list_my_achievements(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """All active achievements with the caller's unlock state."""
    entries = await get_user_achievements(db, user_id)
    return UserAchievementsResponse(achievements=entries, total=len(entries))


@router.get("/recent", response_model=RecentUnlocksResponse)
async def recent_unlocks(
    limit: int | None = Query(default=None, ge=1, le=50),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """The caller's most recent unlocks."""
    unlocks = await get_recent_unlocks(db, user_id, limit or get_settings().recent_unlocks_limit)
    return RecentUnlocksResponse(unlocks=unlocks)


@router.get("/stats", response_model=AchievementStatsResponse)
async def achievement_stats(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return await get_achievement_stats(db, user_id)
