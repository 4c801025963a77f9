"""Score persistence and leaderboard queries."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from komoru.achievements.unlock import dialect_insert
from komoru.db.models import GameScore, User
from komoru.games.schemas import LeaderboardEntry

logger = logging.getLogger(__name__)

VALID_GAME_IDS = frozenset({"snake", "memory"})


async def ensure_user(db: AsyncSession, user_id: str, username: str | None = None) -> None:
    """Create the user row on first contact. No-op if it exists."""
    await db.execute(
        dialect_insert(db, User)
        .values(id=user_id, username=username, created_at=datetime.now(timezone.utc))
        .on_conflict_do_nothing(index_elements=["id"])
    )


async def save_score(db: AsyncSession, user_id: str, game_id: str, score: int) -> GameScore:
    """Insert a score row and commit. The caller's primary write."""
    row = GameScore(
        user_id=user_id,
        game_id=game_id,
        score=score,
        created_at=datetime.now(timezone.utc),
    )
    db.add(row)
    await db.commit()
    logger.info("Saved %s score %d for %s", game_id, score, user_id)
    return row


async def get_leaderboard(db: AsyncSession, game_id: str, limit: int = 10) -> list[LeaderboardEntry]:
    """Best score per user for a game, highest first."""
    best = func.max(GameScore.score).label("best")
    result = await db.execute(
        select(GameScore.user_id, User.username, best)
        .join(User, User.id == GameScore.user_id)
        .where(GameScore.game_id == game_id)
        .group_by(GameScore.user_id, User.username)
        .order_by(best.desc(), GameScore.user_id)
        .limit(limit)
    )
    return [
        LeaderboardEntry(user_id=user_id, username=username, score=score)
        for user_id, username, score in result.all()
    ]
