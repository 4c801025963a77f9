"""Append-only gameplay event log.

Writes are best-effort: failing to log an event must never abort the score
save that triggered it, so every write failure is rolled back, logged and
swallowed.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Callable
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from komoru.db.models import AchievementEvent

logger = logging.getLogger(__name__)


class EventKind(str, enum.Enum):
    """Gameplay fact types, stored as achievement_events.event_type."""

    PLAYED = "game_played"
    SCORE_ACHIEVED = "score_achieved"
    NIGHT_PLAY = "night_play"


def _local_now() -> datetime:
    return datetime.now().astimezone()


class EventLog:
    """Writes gameplay facts and derives the synthetic night-play fact."""

    def __init__(
        self,
        night_start_hour: int = 0,
        night_end_hour: int = 5,
        clock: Callable[[], datetime] = _local_now,
    ) -> None:
        self.night_start_hour = night_start_hour
        self.night_end_hour = night_end_hour
        self._clock = clock

    def is_night(self, at: datetime) -> bool:
        """True when the wall-clock hour falls in [night_start_hour, night_end_hour)."""
        return self.night_start_hour <= at.hour < self.night_end_hour

    async def record_event(
        self,
        db: AsyncSession,
        user_id: str,
        kind: EventKind,
        value: float = 1,
        game_id: str | None = None,
        at: datetime | None = None,
    ) -> bool:
        """Append one fact stamped ``at`` (default: now).

        Returns False (never raises) if the write failed.
        """
        try:
            db.add(AchievementEvent(
                user_id=user_id,
                event_type=kind.value,
                event_value=value,
                game_id=game_id,
                created_at=at or self._clock(),
            ))
            await db.commit()
        except SQLAlchemyError:
            await db.rollback()
            logger.warning(
                "Failed to record %s event for user %s", kind.value, user_id, exc_info=True,
            )
            return False
        return True

    async def record_gameplay(
        self,
        db: AsyncSession,
        user_id: str,
        game_id: str,
        score: float,
    ) -> list[EventKind]:
        """Record the facts for one finished game.

        Returns the kinds that were written successfully.
        """
        recorded: list[EventKind] = []
        played_at = self._clock()

        if await self.record_event(db, user_id, EventKind.PLAYED, 1, game_id, played_at):
            recorded.append(EventKind.PLAYED)
        if await self.record_event(db, user_id, EventKind.SCORE_ACHIEVED, score, game_id, played_at):
            recorded.append(EventKind.SCORE_ACHIEVED)

        if self.is_night(played_at):
            if await self.record_event(db, user_id, EventKind.NIGHT_PLAY, 1, at=played_at):
                recorded.append(EventKind.NIGHT_PLAY)

        return recorded


# ---------------------------------------------------------------------------
# Aggregate lookups (used by condition handlers)
# ---------------------------------------------------------------------------


async def count_events(db: AsyncSession, user_id: str, kind: EventKind) -> int:
    """Count a user's events of one kind."""
    result = await db.execute(
        select(func.count())
        .select_from(AchievementEvent)
        .where(
            AchievementEvent.user_id == user_id,
            AchievementEvent.event_type == kind.value,
        )
    )
    return int(result.scalar_one())


async def has_event(db: AsyncSession, user_id: str, kind: EventKind) -> bool:
    """True if the user has at least one event of this kind."""
    result = await db.execute(
        select(AchievementEvent.id)
        .where(
            AchievementEvent.user_id == user_id,
            AchievementEvent.event_type == kind.value,
        )
        .limit(1)
    )
    return result.scalar_one_or_none() is not None
