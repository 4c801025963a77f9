"""Evaluation pipeline: gameplay event -> candidate rules -> unlocks."""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from komoru.achievements.catalog import RuleCatalog
from komoru.achievements.event_log import EventLog
from komoru.achievements.schemas import ConditionContext, UnlockedAchievement
from komoru.achievements.unlock import UnlockCoordinator

logger = logging.getLogger(__name__)


class EvaluationPipeline:
    """Runs the achievement checks for one score submission.

    Never raises: achievement processing must not block or fail the score
    save that called it. Failures are logged and cost at most a delayed
    unlock on a later event.
    """

    def __init__(
        self,
        event_log: EventLog,
        catalog: RuleCatalog,
        coordinator: UnlockCoordinator,
    ) -> None:
        self.event_log = event_log
        self.catalog = catalog
        self.coordinator = coordinator

    async def check_achievements(
        self,
        db: AsyncSession,
        user_id: str,
        game_id: str,
        score: float,
        metadata: dict[str, Any] | None = None,
    ) -> list[UnlockedAchievement]:
        """Record the gameplay facts and unlock every newly satisfied achievement.

        Returns the achievements unlocked by this call (may be empty).
        """
        context = ConditionContext(game_id=game_id, score=score, metadata=metadata or {})

        try:
            await self.event_log.record_gameplay(db, user_id, game_id, score)
            rules = await self.catalog.candidates(db, game_id)
        except Exception:
            logger.warning("Achievement check aborted for %s in %s", user_id, game_id, exc_info=True)
            return []

        unlocked: list[UnlockedAchievement] = []
        for rule in rules:
            try:
                result = await self.coordinator.attempt(db, user_id, rule, context)
            except SQLAlchemyError:
                await db.rollback()
                logger.warning(
                    "Query failed evaluating achievement %s for %s; skipped",
                    rule.id, user_id, exc_info=True,
                )
                continue
            except Exception:
                await db.rollback()
                logger.warning(
                    "Evaluator error on achievement %s (%s) for %s; skipped",
                    rule.id, rule.condition_type, user_id, exc_info=True,
                )
                continue

            if result is not None:
                unlocked.append(result)

        if unlocked:
            logger.info(
                "%d achievement(s) unlocked for %s in %s: %s",
                len(unlocked), user_id, game_id, [a.title for a in unlocked],
            )
        return unlocked
