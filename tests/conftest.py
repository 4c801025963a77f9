"""Shared test fixtures."""

from __future__ import annotations

import os

# Must be set before komoru reads its settings.
os.environ["KOMORU_REDIS_URL"] = ""
os.environ["KOMORU_LOG_FORMAT"] = "console"

from collections.abc import AsyncGenerator  # noqa: E402
from datetime import datetime  # noqa: E402
from pathlib import Path  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession  # noqa: E402

from komoru.achievements.catalog import RuleCatalog  # noqa: E402
from komoru.achievements.conditions import ConditionEvaluator  # noqa: E402
from komoru.achievements.event_log import EventLog  # noqa: E402
from komoru.achievements.pipeline import EvaluationPipeline  # noqa: E402
from komoru.achievements.schemas import AchievementRule  # noqa: E402
from komoru.achievements.seed import seed_achievements  # noqa: E402
from komoru.achievements.unlock import UnlockCoordinator  # noqa: E402
from komoru.config import get_settings  # noqa: E402
from komoru.database import close_db, create_tables, get_session_factory, init_db  # noqa: E402
from komoru.db.models import AchievementDefinition  # noqa: E402
from komoru.games.service import ensure_user  # noqa: E402
from komoru.main import create_app  # noqa: E402

NOON = datetime(2026, 3, 14, 12, 0)
THREE_AM = datetime(2026, 3, 14, 3, 0)


class StubRandom:
    """Stands in for random.Random: always returns the same draw."""

    def __init__(self, value: float) -> None:
        self.value = value

    def random(self) -> float:
        return self.value


class FakeTimerHandle:
    def __init__(self, when: float, seq: int, callback) -> None:
        self.when = when
        self.seq = seq
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeClock:
    """Manual timer source with the ``call_later(delay, fn)`` shape."""

    def __init__(self) -> None:
        self.now = 0.0
        self._seq = 0
        self._timers: list[FakeTimerHandle] = []

    def call_later(self, delay: float, callback) -> FakeTimerHandle:
        self._seq += 1
        handle = FakeTimerHandle(self.now + delay, self._seq, callback)
        self._timers.append(handle)
        return handle

    @property
    def pending(self) -> list[FakeTimerHandle]:
        return [h for h in self._timers if not h.cancelled]

    def advance(self, seconds: float) -> None:
        """Move time forward, firing due timers in order (including ones they arm)."""
        target = self.now + seconds
        while True:
            due = [h for h in self.pending if h.when <= target + 1e-9]
            if not due:
                break
            handle = min(due, key=lambda h: (h.when, h.seq))
            self._timers.remove(handle)
            self.now = max(self.now, handle.when)
            handle.callback()
        self.now = target


def make_pipeline(
    rng_value: float = 0.4,
    clock_time: datetime = NOON,
    secret_currency_bonus: int = 50,
) -> EvaluationPipeline:
    """A pipeline with deterministic randomness and wall clock.

    The default draw of 0.4 fails both probabilistic kinds (streak needs
    > 0.5, random event needs < 0.3).
    """
    catalog = RuleCatalog()
    coordinator = UnlockCoordinator(
        evaluator=ConditionEvaluator(rng=StubRandom(rng_value)),
        catalog=catalog,
        secret_currency_bonus=secret_currency_bonus,
    )
    return EvaluationPipeline(
        event_log=EventLog(clock=lambda: clock_time),
        catalog=catalog,
        coordinator=coordinator,
    )


async def add_rule(db: AsyncSession, **fields) -> AchievementRule:
    """Insert an achievement definition and return its snapshot."""
    defaults = {
        "title": f"Rule {fields.get('condition_type', 'x')} {fields.get('condition_value', 0)}",
        "description": "test rule",
        "xp_reward": 100,
        "icon": "🏆",
        "game_id": None,
        "condition_value": 0,
        "is_secret": False,
        "is_active": True,
        "sort_order": 0,
    }
    definition = AchievementDefinition(**{**defaults, **fields})
    db.add(definition)
    await db.commit()
    return AchievementRule.model_validate(definition)


async def add_user(db: AsyncSession, user_id: str = "user-1", username: str | None = "Player One") -> str:
    await ensure_user(db, user_id, username)
    await db.commit()
    return user_id


@pytest.fixture
def database_url(tmp_path: Path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'komoru_test.db'}"


@pytest_asyncio.fixture
async def database(database_url: str) -> AsyncGenerator[None, None]:
    """Fresh schema in a temporary SQLite file."""
    await init_db(database_url)
    await create_tables()
    yield
    await close_db()


@pytest_asyncio.fixture
async def db_session(database: None) -> AsyncGenerator[AsyncSession, None]:
    """A session on an empty catalog."""
    async with get_session_factory()() as session:
        yield session


@pytest_asyncio.fixture
async def seeded_db(db_session: AsyncSession) -> AsyncSession:
    """A session on the default catalog."""
    await seed_achievements(db_session)
    return db_session


@pytest_asyncio.fixture
async def user_id(db_session: AsyncSession) -> str:
    return await add_user(db_session)


@pytest.fixture
def pipeline() -> EvaluationPipeline:
    return make_pipeline()


@pytest_asyncio.fixture
async def app(database: None):
    """Application on a seeded SQLite database with a deterministic pipeline."""
    get_settings.cache_clear()
    application = create_app()
    application.state.pipeline = make_pipeline()

    async with get_session_factory()() as session:
        await seed_achievements(session)

    return application


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP test client (ASGI transport, no network)."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
