"""Read-side achievement queries for profile pages."""

from __future__ import annotations

from sqlalchemy import and_, case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from komoru.achievements.schemas import (
    AchievementStatsResponse,
    UnlockedAchievement,
    UserAchievementEntry,
)
from komoru.db.models import AchievementDefinition, UserAchievement

HIDDEN_TITLE = "???"
HIDDEN_DESCRIPTION = "Secret achievement"
HIDDEN_ICON = "❓"


async def get_user_achievements(db: AsyncSession, user_id: str) -> list[UserAchievementEntry]:
    """All active achievements with the user's unlock state.

    Ordered unlocked first, then regular before secret, then by xp reward.
    Locked secret achievements are masked.
    """
    unlocked_first = case((UserAchievement.id.is_not(None), 0), else_=1)
    result = await db.execute(
        select(AchievementDefinition, UserAchievement.unlocked_at)
        .outerjoin(
            UserAchievement,
            and_(
                UserAchievement.achievement_id == AchievementDefinition.id,
                UserAchievement.user_id == user_id,
            ),
        )
        .where(AchievementDefinition.is_active.is_(True))
        .order_by(
            unlocked_first,
            AchievementDefinition.is_secret,
            AchievementDefinition.xp_reward.desc(),
            AchievementDefinition.id,
        )
    )

    entries = []
    for definition, unlocked_at in result.all():
        is_unlocked = unlocked_at is not None
        masked = definition.is_secret and not is_unlocked
        entries.append(UserAchievementEntry(
            id=definition.id,
            title=HIDDEN_TITLE if masked else definition.title,
            description=HIDDEN_DESCRIPTION if masked else definition.description,
            icon=HIDDEN_ICON if masked else definition.icon,
            xp_reward=definition.xp_reward,
            game_id=definition.game_id,
            is_secret=definition.is_secret,
            is_unlocked=is_unlocked,
            unlocked_at=unlocked_at,
        ))
    return entries


async def get_recent_unlocks(db: AsyncSession, user_id: str, limit: int = 5) -> list[UnlockedAchievement]:
    """The user's most recent unlocks, newest first."""
    result = await db.execute(
        select(UserAchievement)
        .where(UserAchievement.user_id == user_id)
        .order_by(UserAchievement.unlocked_at.desc(), UserAchievement.id.desc())
        .limit(limit)
    )
    return [
        UnlockedAchievement(
            id=row.achievement.id,
            title=row.achievement.title,
            description=row.achievement.description,
            icon=row.achievement.icon,
            xp_reward=row.achievement.xp_reward,
            is_secret=row.achievement.is_secret,
            unlocked_at=row.unlocked_at,
        )
        for row in result.scalars().unique()
    ]


async def get_achievement_stats(db: AsyncSession, user_id: str) -> AchievementStatsResponse:
    """Totals over active achievements: available, unlocked, secret unlocked."""
    unlocked = UserAchievement.id.is_not(None)
    result = await db.execute(
        select(
            func.count(AchievementDefinition.id),
            func.count(case((unlocked, 1))),
            func.count(case((and_(unlocked, AchievementDefinition.is_secret.is_(True)), 1))),
        )
        .select_from(AchievementDefinition)
        .outerjoin(
            UserAchievement,
            and_(
                UserAchievement.achievement_id == AchievementDefinition.id,
                UserAchievement.user_id == user_id,
            ),
        )
        .where(AchievementDefinition.is_active.is_(True))
    )
    total, unlocked_count, secret_unlocked = result.one()
    return AchievementStatsResponse(
        total_achievements=total,
        unlocked_count=unlocked_count,
        secret_unlocked=secret_unlocked,
    )
