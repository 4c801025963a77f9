"""Pydantic models for the achievement engine and its endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


# --- Engine ---


class AchievementRule(BaseModel):
    """Immutable snapshot of an achievement definition.

    The engine works on snapshots rather than ORM rows so that a rollback
    inside one unlock attempt never expires the definitions still to be
    evaluated.
    """

    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: int
    title: str
    description: str = ""
    xp_reward: int = 0
    game_id: str | None = None
    icon: str = "🏆"
    condition_type: str
    condition_value: float = 0
    is_secret: bool = False
    is_active: bool = True


class ConditionContext(BaseModel):
    """What triggered the evaluation: the game, the score and free-form metadata."""

    model_config = ConfigDict(frozen=True)

    game_id: str | None = None
    score: float = 0
    metadata: dict[str, Any] = Field(default_factory=dict)


class UnlockedAchievement(BaseModel):
    """Payload returned to the client for each achievement unlocked by a request."""

    id: int
    title: str
    description: str
    icon: str
    xp_reward: int
    is_secret: bool
    unlocked_at: datetime

    @classmethod
    def from_rule(cls, rule: AchievementRule, unlocked_at: datetime) -> UnlockedAchievement:
        return cls(
            id=rule.id,
            title=rule.title,
            description=rule.description,
            icon=rule.icon,
            xp_reward=rule.xp_reward,
            is_secret=rule.is_secret,
            unlocked_at=unlocked_at,
        )


# --- Read side ---


class UserAchievementEntry(BaseModel):
    id: int
    title: str
    description: str
    icon: str
    xp_reward: int
    game_id: str | None = None
    is_secret: bool
    is_unlocked: bool
    unlocked_at: datetime | None = None


class UserAchievementsResponse(BaseModel):
    achievements: list[UserAchievementEntry]
    total: int


class RecentUnlocksResponse(BaseModel):
    unlocks: list[UnlockedAchievement]


class AchievementStatsResponse(BaseModel):
    total_achievements: int
    unlocked_count: int
    secret_unlocked: int
