"""Read-only access to achievement definitions and unlock state."""

from __future__ import annotations

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from komoru.achievements.schemas import AchievementRule
from komoru.db.models import AchievementDefinition, UserAchievement


class RuleCatalog:
    """Fetches definitions as immutable ``AchievementRule`` snapshots."""

    async def candidates(self, db: AsyncSession, game_id: str | None) -> list[AchievementRule]:
        """Active definitions scoped to ``game_id`` or global, in catalog order."""
        scope = AchievementDefinition.game_id.is_(None)
        if game_id:
            scope = or_(scope, AchievementDefinition.game_id == game_id)

        result = await db.execute(
            select(AchievementDefinition)
            .where(AchievementDefinition.is_active.is_(True), scope)
            .order_by(AchievementDefinition.sort_order, AchievementDefinition.id)
        )
        return [AchievementRule.model_validate(row) for row in result.scalars()]

    async def get_rule(self, db: AsyncSession, achievement_id: int) -> AchievementRule | None:
        row = await db.get(AchievementDefinition, achievement_id)
        return AchievementRule.model_validate(row) if row is not None else None

    async def is_unlocked(self, db: AsyncSession, user_id: str, achievement_id: int) -> bool:
        """Check if the user already holds an unlock record for this achievement."""
        result = await db.execute(
            select(UserAchievement.id).where(
                UserAchievement.user_id == user_id,
                UserAchievement.achievement_id == achievement_id,
            )
        )
        return result.scalar_one_or_none() is not None
