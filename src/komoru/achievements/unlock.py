"""Unlock coordinator: exactly-once unlocks with an atomic reward.

There is no application-level lock. Concurrency safety comes from the
UNIQUE(user_id, achievement_id) constraint on user_achievements:

1. INSERT ... ON CONFLICT DO NOTHING the unlock record
2. Only if a row was inserted, add xp (and the secret currency bonus)
   in the same transaction
3. COMMIT, or ROLLBACK everything on any database error

Two requests racing on the same (user, achievement) may both decide to
unlock, but only one insert lands, and the loser never touches the reward
row. This stays correct across several service instances sharing a database.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from komoru.achievements.catalog import RuleCatalog
from komoru.achievements.conditions import ConditionEvaluator
from komoru.achievements.schemas import AchievementRule, ConditionContext, UnlockedAchievement
from komoru.db.models import UserAchievement, UserReward

logger = logging.getLogger(__name__)

DEFAULT_SECRET_CURRENCY_BONUS = 50


def dialect_insert(db: AsyncSession, table: Any) -> Any:
    """Return an insert construct that supports ``on_conflict_do_nothing``."""
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert(table)
    if dialect == "sqlite":
        return sqlite.insert(table)
    msg = f"insert-if-absent is not supported on {dialect}"
    raise NotImplementedError(msg)


class UnlockCoordinator:
    """Sole writer of unlock records and reward deltas."""

    def __init__(
        self,
        evaluator: ConditionEvaluator,
        catalog: RuleCatalog,
        secret_currency_bonus: int = DEFAULT_SECRET_CURRENCY_BONUS,
    ) -> None:
        self.evaluator = evaluator
        self.catalog = catalog
        self.secret_currency_bonus = secret_currency_bonus

    async def attempt(
        self,
        db: AsyncSession,
        user_id: str,
        rule: AchievementRule,
        context: ConditionContext,
    ) -> UnlockedAchievement | None:
        """Locked -> Unlocked if not yet unlocked and the condition holds.

        Read errors propagate to the caller; write errors are handled by
        ``unlock``.
        """
        if await self.catalog.is_unlocked(db, user_id, rule.id):
            return None

        if not await self.evaluator.evaluate(db, user_id, rule, context):
            return None

        return await self.unlock(db, user_id, rule)

    async def unlock(
        self,
        db: AsyncSession,
        user_id: str,
        rule: AchievementRule,
    ) -> UnlockedAchievement | None:
        """Insert the unlock record and apply the reward in one transaction.

        Returns None if another request already unlocked it or a database
        error aborted the transaction (the achievement stays locked and is
        retried on the next triggering event).
        Any other exception is rolled back the same way and re-raised.
        """
        now = datetime.now(timezone.utc)

        try:
            inserted = await self._insert_unlock_if_absent(db, user_id, rule, now)
            if not inserted:
                await db.rollback()
                logger.debug("Achievement %s already unlocked for %s", rule.id, user_id)
                return None

            await self._apply_reward(db, user_id, rule, now)
            await db.commit()
        except SQLAlchemyError:
            await db.rollback()
            logger.warning(
                "Unlock transaction failed for achievement %s, user %s; left locked",
                rule.id, user_id, exc_info=True,
            )
            return None
        except Exception:
            # Nothing from a half-applied unlock may reach a later commit.
            await db.rollback()
            raise

        logger.info("Unlocked achievement %r (%s) for %s", rule.title, rule.id, user_id)
        return UnlockedAchievement.from_rule(rule, now)

    async def _insert_unlock_if_absent(
        self,
        db: AsyncSession,
        user_id: str,
        rule: AchievementRule,
        now: datetime,
    ) -> bool:
        stmt = (
            dialect_insert(db, UserAchievement)
            .values(user_id=user_id, achievement_id=rule.id, unlocked_at=now)
            .on_conflict_do_nothing(index_elements=["user_id", "achievement_id"])
        )
        result = await db.execute(stmt)
        return result.rowcount == 1

    async def _apply_reward(
        self,
        db: AsyncSession,
        user_id: str,
        rule: AchievementRule,
        now: datetime,
    ) -> None:
        """Add xp, plus the currency bonus for secret achievements."""
        await db.execute(
            dialect_insert(db, UserReward)
            .values(user_id=user_id, total_xp=0, currency_balance=0, updated_at=now)
            .on_conflict_do_nothing(index_elements=["user_id"])
        )

        values: dict[str, Any] = {
            "total_xp": UserReward.total_xp + rule.xp_reward,
            "updated_at": now,
        }
        if rule.is_secret:
            values["currency_balance"] = UserReward.currency_balance + self.secret_currency_bonus

        await db.execute(
            update(UserReward)
            .where(UserReward.user_id == user_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
