"""Default achievement catalog, inserted once at startup."""

from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from komoru.achievements.unlock import dialect_insert
from komoru.db.models import AchievementDefinition

logger = logging.getLogger(__name__)

ACHIEVEMENT_SEED_DATA: list[dict] = [
    # Getting started
    {
        "title": "First Game",
        "description": "Play your first game",
        "xp_reward": 50,
        "game_id": None,
        "icon": "🎮",
        "condition_type": "total_games",
        "condition_value": 1,
        "sort_order": 1,
    },
    {
        "title": "Welcome Aboard",
        "description": "Sign in to Komoru for the first time",
        "xp_reward": 25,
        "game_id": None,
        "icon": "👋",
        "condition_type": "login_count",
        "condition_value": 1,
        "sort_order": 2,
    },
    # Snake
    {
        "title": "Snake Master",
        "description": "Score 500 points in Snake",
        "xp_reward": 150,
        "game_id": "snake",
        "icon": "🐍",
        "condition_type": "game_score",
        "condition_value": 500,
        "sort_order": 3,
    },
    {
        "title": "Speed Demon",
        "description": "Reach speed 10 in Snake",
        "xp_reward": 150,
        "game_id": "snake",
        "icon": "⚡",
        "condition_type": "game_speed",
        "condition_value": 10,
        "sort_order": 4,
    },
    # Memory
    {
        "title": "Puzzle Solver",
        "description": "Finish a game of Memory",
        "xp_reward": 100,
        "game_id": "memory",
        "icon": "🧩",
        "condition_type": "game_complete",
        "condition_value": 1,
        "sort_order": 5,
    },
    {
        "title": "Memory Genius",
        "description": "Find all pairs in 60 seconds",
        "xp_reward": 200,
        "game_id": "memory",
        "icon": "🧠",
        "condition_type": "game_time",
        "condition_value": 60,
        "sort_order": 6,
    },
    {
        "title": "Memory Master",
        "description": "Finish three games of Memory",
        "xp_reward": 300,
        "game_id": "memory",
        "icon": "🧠",
        "condition_type": "game_complete",
        "condition_value": 3,
        "sort_order": 7,
    },
    # Progression
    {
        "title": "Regular",
        "description": "Play 20 games",
        "xp_reward": 250,
        "game_id": None,
        "icon": "🎯",
        "condition_type": "total_games",
        "condition_value": 20,
        "sort_order": 8,
    },
    {
        "title": "On a Roll",
        "description": "Keep coming back day after day",
        "xp_reward": 300,
        "game_id": None,
        "icon": "🔥",
        "condition_type": "login_streak",
        "condition_value": 7,
        "sort_order": 9,
    },
    {
        "title": "Collector",
        "description": "Unlock 5 achievements",
        "xp_reward": 200,
        "game_id": None,
        "icon": "🏆",
        "condition_type": "achievement_count",
        "condition_value": 5,
        "sort_order": 10,
    },
    {
        "title": "Collector II",
        "description": "Unlock 10 achievements",
        "xp_reward": 500,
        "game_id": None,
        "icon": "🏆",
        "condition_type": "achievement_count",
        "condition_value": 10,
        "sort_order": 11,
    },
    # Secret
    {
        "title": "Night Owl",
        "description": "Play between midnight and 5 AM",
        "xp_reward": 400,
        "game_id": None,
        "icon": "🌙",
        "condition_type": "night_play",
        "condition_value": 1,
        "is_secret": True,
        "sort_order": 99,
    },
    {
        "title": "Lucky Star",
        "description": "Fortune smiled on you",
        "xp_reward": 100,
        "game_id": None,
        "icon": "🍀",
        "condition_type": "random_event",
        "condition_value": 1,
        "is_secret": True,
        "sort_order": 99,
    },
    {
        # Unlocked only by a dedicated trigger, never by the score pipeline.
        "title": "Hidden Gem",
        "description": "You found something nobody was supposed to find",
        "xp_reward": 250,
        "game_id": None,
        "icon": "💎",
        "condition_type": "secret_found",
        "condition_value": 1,
        "is_secret": True,
        "is_active": False,
        "sort_order": 99,
    },
]


async def seed_achievements(db: AsyncSession) -> int:
    """Insert the default catalog, skipping titles that already exist.

    Definitions are immutable once created, so existing rows are never
    updated. Returns the number of rows inserted.
    """
    inserted = 0
    for data in ACHIEVEMENT_SEED_DATA:
        stmt = (
            dialect_insert(db, AchievementDefinition)
            .values(**data)
            .on_conflict_do_nothing(index_elements=["title"])
        )
        result = await db.execute(stmt)
        inserted += result.rowcount or 0

    await db.commit()
    logger.info("Seeded %d achievement definitions (%d in catalog)", inserted, len(ACHIEVEMENT_SEED_DATA))
    return inserted
