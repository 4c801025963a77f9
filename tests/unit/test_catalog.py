"""Rule catalog and seed data tests."""

from __future__ import annotations

import pytest
from sqlalchemy import func, select

from conftest import add_rule
from komoru.achievements.catalog import RuleCatalog
from komoru.achievements.conditions import ConditionKind
from komoru.achievements.seed import ACHIEVEMENT_SEED_DATA, seed_achievements
from komoru.db.models import AchievementDefinition


class TestCandidates:
    @pytest.mark.asyncio
    async def test_scope_filter(self, db_session):
        await add_rule(db_session, title="Global", condition_type="total_games")
        await add_rule(db_session, title="Snake only", condition_type="game_score", game_id="snake")
        await add_rule(db_session, title="Memory only", condition_type="game_complete", game_id="memory")

        titles = {r.title for r in await RuleCatalog().candidates(db_session, "snake")}
        assert titles == {"Global", "Snake only"}

    @pytest.mark.asyncio
    async def test_no_game_means_global_only(self, db_session):
        await add_rule(db_session, title="Global", condition_type="total_games")
        await add_rule(db_session, title="Snake only", condition_type="game_score", game_id="snake")

        titles = [r.title for r in await RuleCatalog().candidates(db_session, None)]
        assert titles == ["Global"]

    @pytest.mark.asyncio
    async def test_inactive_excluded(self, db_session):
        await add_rule(db_session, title="Retired", condition_type="total_games", is_active=False)
        assert await RuleCatalog().candidates(db_session, "snake") == []

    @pytest.mark.asyncio
    async def test_catalog_order(self, db_session):
        await add_rule(db_session, title="Third", condition_type="total_games", sort_order=3)
        await add_rule(db_session, title="First", condition_type="total_games", sort_order=1)
        await add_rule(db_session, title="Second", condition_type="total_games", sort_order=2)

        titles = [r.title for r in await RuleCatalog().candidates(db_session, "snake")]
        assert titles == ["First", "Second", "Third"]

    @pytest.mark.asyncio
    async def test_get_rule(self, db_session):
        rule = await add_rule(db_session, title="Lookup", condition_type="total_games")
        catalog = RuleCatalog()

        assert (await catalog.get_rule(db_session, rule.id)).title == "Lookup"
        assert await catalog.get_rule(db_session, 9999) is None


class TestSeed:
    def test_seed_uses_known_kinds(self):
        for entry in ACHIEVEMENT_SEED_DATA:
            assert ConditionKind.parse(entry["condition_type"]) is not None, entry["title"]

    def test_seed_titles_unique(self):
        titles = [entry["title"] for entry in ACHIEVEMENT_SEED_DATA]
        assert len(titles) == len(set(titles))

    @pytest.mark.asyncio
    async def test_seed_is_idempotent(self, db_session):
        await seed_achievements(db_session)
        await seed_achievements(db_session)

        result = await db_session.execute(select(func.count()).select_from(AchievementDefinition))
        assert result.scalar_one() == len(ACHIEVEMENT_SEED_DATA)
