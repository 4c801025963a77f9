"""Achievement read endpoints."""

from __future__ import annotations

import pytest

from komoru.achievements.seed import ACHIEVEMENT_SEED_DATA

USER = {"X-User-Id": "user-1"}
ACTIVE = [a for a in ACHIEVEMENT_SEED_DATA if a.get("is_active", True)]


async def _play_snake(client, score: int = 600) -> dict:
    response = await client.post("/api/games/snake/scores", json={"score": score}, headers=USER)
    assert response.status_code == 201
    return response.json()


class TestListAchievements:
    @pytest.mark.asyncio
    async def test_requires_user(self, client):
        response = await client.get("/api/achievements")
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_new_user_sees_catalog_locked(self, client):
        response = await client.get("/api/achievements", headers=USER)

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == len(ACTIVE)
        assert not any(a["is_unlocked"] for a in data["achievements"])

    @pytest.mark.asyncio
    async def test_locked_secrets_are_masked(self, client):
        data = (await client.get("/api/achievements", headers=USER)).json()

        secrets = [a for a in data["achievements"] if a["is_secret"]]
        assert secrets
        for entry in secrets:
            assert entry["title"] == "???"
            assert entry["icon"] == "❓"
        assert "Hidden Gem" not in {a["title"] for a in data["achievements"]}

    @pytest.mark.asyncio
    async def test_unlocked_listed_first(self, client):
        await _play_snake(client)

        entries = (await client.get("/api/achievements", headers=USER)).json()["achievements"]

        unlocked = [e["title"] for e in entries if e["is_unlocked"]]
        assert set(unlocked) == {"First Game", "Welcome Aboard", "Snake Master"}
        assert [e["is_unlocked"] for e in entries[:3]] == [True, True, True]
        assert all(e["unlocked_at"] for e in entries[:3])
        # Among locked: regular before secret.
        locked = entries[3:]
        flags = [e["is_secret"] for e in locked]
        assert flags == sorted(flags)


class TestRecentAndStats:
    @pytest.mark.asyncio
    async def test_recent_unlocks(self, client):
        await _play_snake(client)

        response = await client.get("/api/achievements/recent", headers=USER, params={"limit": 2})

        assert response.status_code == 200
        assert len(response.json()["unlocks"]) == 2

    @pytest.mark.asyncio
    async def test_recent_limit_bounds(self, client):
        response = await client.get("/api/achievements/recent", headers=USER, params={"limit": 0})
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_stats(self, client):
        before = (await client.get("/api/achievements/stats", headers=USER)).json()
        assert before == {"total_achievements": len(ACTIVE), "unlocked_count": 0, "secret_unlocked": 0}

        await _play_snake(client)
        after = (await client.get("/api/achievements/stats", headers=USER)).json()

        assert after["unlocked_count"] == 3
        assert after["secret_unlocked"] == 0

    @pytest.mark.asyncio
    async def test_users_are_isolated(self, client):
        await _play_snake(client)

        other = (await client.get("/api/achievements/stats", headers={"X-User-Id": "user-2"})).json()
        assert other["unlocked_count"] == 0
