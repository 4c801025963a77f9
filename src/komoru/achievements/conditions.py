"""Condition evaluation: one pure handler per condition kind.

Handlers are registered in a map keyed by the closed ``ConditionKind`` enum.
The map is checked for exhaustiveness at import, so adding a kind without a
handler fails fast instead of silently never unlocking.
"""

from __future__ import annotations

import enum
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from komoru.achievements.event_log import EventKind, count_events, has_event
from komoru.achievements.schemas import AchievementRule, ConditionContext
from komoru.db.models import GameScore, User, UserAchievement

logger = logging.getLogger(__name__)

STREAK_PROBABILITY = 0.5
RANDOM_EVENT_PROBABILITY = 0.3


class ConditionKind(str, enum.Enum):
    """Condition kinds, valued by the condition_type stored on definitions."""

    SCORE_THRESHOLD = "game_score"
    TOTAL_EVENT_COUNT = "total_games"
    COMPLETION_COUNT = "game_complete"
    ACCOUNT_EXISTS = "login_count"
    STREAK_PROBABILISTIC = "login_streak"
    UNLOCK_COUNT = "achievement_count"
    TIME_UNDER = "game_time"
    SPEED_OVER = "game_speed"
    SECRET_ALWAYS_TRUE = "secret_found"
    RANDOM_CHANCE = "random_event"
    NIGHT_FLAG_PRESENT = "night_play"

    @classmethod
    def parse(cls, condition_type: str) -> ConditionKind | None:
        """Map a stored condition_type to a kind, or None if there is no handler."""
        try:
            return cls(condition_type)
        except ValueError:
            return None


@dataclass(frozen=True)
class Evaluation:
    """Inputs to a single handler call."""

    db: AsyncSession
    user_id: str
    rule: AchievementRule
    context: ConditionContext
    rng: random.Random


Handler = Callable[[Evaluation], Awaitable[bool]]


def _metadata_number(context: ConditionContext, key: str) -> float:
    value = context.metadata.get(key) or 0
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


async def _score_threshold(ev: Evaluation) -> bool:
    return ev.context.score >= ev.rule.condition_value


async def _total_event_count(ev: Evaluation) -> bool:
    played = await count_events(ev.db, ev.user_id, EventKind.PLAYED)
    return played >= ev.rule.condition_value


async def _completion_count(ev: Evaluation) -> bool:
    """Positive-score games for (user, game). Game-scoped rules only count their own game."""
    if ev.rule.game_id and ev.context.game_id and ev.rule.game_id != ev.context.game_id:
        return False

    game_id = ev.context.game_id or ev.rule.game_id
    result = await ev.db.execute(
        select(func.count())
        .select_from(GameScore)
        .where(
            GameScore.user_id == ev.user_id,
            GameScore.game_id == game_id,
            GameScore.score > 0,
        )
    )
    return int(result.scalar_one()) >= ev.rule.condition_value


async def _account_exists(ev: Evaluation) -> bool:
    # Degenerate "first login": the account row exists.
    result = await ev.db.execute(select(User.id).where(User.id == ev.user_id))
    return result.scalar_one_or_none() is not None


async def _streak_probabilistic(ev: Evaluation) -> bool:
    # No login history is tracked; this is a coin flip per evaluation.
    return ev.rng.random() > STREAK_PROBABILITY


async def _unlock_count(ev: Evaluation) -> bool:
    result = await ev.db.execute(
        select(func.count())
        .select_from(UserAchievement)
        .where(UserAchievement.user_id == ev.user_id)
    )
    return int(result.scalar_one()) >= ev.rule.condition_value


async def _time_under(ev: Evaluation) -> bool:
    return _metadata_number(ev.context, "time") <= ev.rule.condition_value


async def _speed_over(ev: Evaluation) -> bool:
    return _metadata_number(ev.context, "speed") >= ev.rule.condition_value


async def _secret_always_true(ev: Evaluation) -> bool:
    return True


async def _random_chance(ev: Evaluation) -> bool:
    return ev.rng.random() < RANDOM_EVENT_PROBABILITY


async def _night_flag_present(ev: Evaluation) -> bool:
    return await has_event(ev.db, ev.user_id, EventKind.NIGHT_PLAY)


_HANDLERS: dict[ConditionKind, Handler] = {
    ConditionKind.SCORE_THRESHOLD: _score_threshold,
    ConditionKind.TOTAL_EVENT_COUNT: _total_event_count,
    ConditionKind.COMPLETION_COUNT: _completion_count,
    ConditionKind.ACCOUNT_EXISTS: _account_exists,
    ConditionKind.STREAK_PROBABILISTIC: _streak_probabilistic,
    ConditionKind.UNLOCK_COUNT: _unlock_count,
    ConditionKind.TIME_UNDER: _time_under,
    ConditionKind.SPEED_OVER: _speed_over,
    ConditionKind.SECRET_ALWAYS_TRUE: _secret_always_true,
    ConditionKind.RANDOM_CHANCE: _random_chance,
    ConditionKind.NIGHT_FLAG_PRESENT: _night_flag_present,
}

_unhandled = set(ConditionKind) - set(_HANDLERS)
if _unhandled:
    msg = f"Condition kinds without a handler: {sorted(k.value for k in _unhandled)}"
    raise RuntimeError(msg)


class ConditionEvaluator:
    """Decides whether a rule is satisfied for a user and trigger context.

    ``rng`` is the randomness source for the probabilistic kinds. Pass a seeded
    ``random.Random`` (or a stub) to make them deterministic.
    """

    def __init__(self, rng: random.Random | None = None) -> None:
        self._rng = rng or random.Random()

    @staticmethod
    def supports(rule: AchievementRule) -> bool:
        return ConditionKind.parse(rule.condition_type) is not None

    async def evaluate(
        self,
        db: AsyncSession,
        user_id: str,
        rule: AchievementRule,
        context: ConditionContext,
    ) -> bool:
        """Evaluate one rule. Unknown condition kinds evaluate to False."""
        kind = ConditionKind.parse(rule.condition_type)
        if kind is None:
            logger.debug("No handler for condition_type %r (achievement %s)", rule.condition_type, rule.id)
            return False

        handler = _HANDLERS[kind]
        return await handler(Evaluation(db, user_id, rule, context, self._rng))
