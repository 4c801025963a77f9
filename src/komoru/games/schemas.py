"""Request/response models for score submission and leaderboards."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from komoru.achievements.schemas import UnlockedAchievement


class ScoreSubmitRequest(BaseModel):
    score: int = Field(ge=0)
    username: str | None = Field(default=None, max_length=64)
    metadata: dict[str, Any] = Field(default_factory=dict)


class ScoreSubmitResponse(BaseModel):
    id: int
    game_id: str
    score: int
    created_at: datetime
    achievements: list[UnlockedAchievement] | None = None


class LeaderboardEntry(BaseModel):
    user_id: str
    username: str | None = None
    score: int


class LeaderboardResponse(BaseModel):
    game_id: str
    entries: list[LeaderboardEntry]
