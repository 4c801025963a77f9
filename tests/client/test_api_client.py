"""KomoruClient tests: mocked transport and the real app over ASGI."""

from __future__ import annotations

import json

import httpx
import pytest
from httpx import ASGITransport

from komoru.client.api import KomoruClient
from komoru.client.notifications import NotificationItem

UNLOCK = {
    "id": 1,
    "title": "First Game",
    "description": "Play your first game",
    "icon": "🎮",
    "xp_reward": 50,
    "is_secret": False,
    "unlocked_at": "2026-03-14T12:00:00Z",
}


def _mock_transport(payload: dict, status_code: int = 201, seen: list | None = None) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        return httpx.Response(status_code, json=payload)

    return httpx.MockTransport(handler)


class TestMockedTransport:
    @pytest.mark.asyncio
    async def test_submit_sends_user_header_and_body(self):
        seen: list[httpx.Request] = []
        transport = _mock_transport({"id": 1, "game_id": "snake", "score": 42}, seen=seen)

        async with KomoruClient("http://komoru", "user-9", transport=transport) as client:
            await client.submit_score("snake", 42, {"speed": 3}, username="Nine")

        request = seen[0]
        assert request.url.path == "/api/games/snake/scores"
        assert request.headers["X-User-Id"] == "user-9"
        assert json.loads(request.content) == {"score": 42, "metadata": {"speed": 3}, "username": "Nine"}

    @pytest.mark.asyncio
    async def test_unlocks_are_delivered(self):
        transport = _mock_transport({"id": 1, "game_id": "snake", "score": 42, "achievements": [UNLOCK]})
        received: list[NotificationItem] = []

        async with KomoruClient("http://komoru", "user-9", transport=transport) as client:
            client.delivery.register(received.append)
            await client.submit_score("snake", 42)

        assert [item.title for item in received] == ["First Game"]

    @pytest.mark.asyncio
    async def test_no_unlocks_nothing_delivered(self):
        transport = _mock_transport({"id": 1, "game_id": "snake", "score": 42})
        received: list[NotificationItem] = []

        async with KomoruClient("http://komoru", "user-9", transport=transport) as client:
            client.delivery.register(received.append)
            await client.submit_score("snake", 42)

        assert received == []

    @pytest.mark.asyncio
    async def test_subscriber_error_does_not_fail_submit(self):
        transport = _mock_transport({"id": 1, "game_id": "snake", "score": 42, "achievements": [UNLOCK]})

        def broken(item: NotificationItem) -> None:
            raise RuntimeError("renderer closed")

        async with KomoruClient("http://komoru", "user-9", transport=transport) as client:
            client.delivery.register(broken)
            data = await client.submit_score("snake", 42)

        assert data["achievements"][0]["title"] == "First Game"

    @pytest.mark.asyncio
    async def test_http_error_raises(self):
        transport = _mock_transport({"detail": "Too many score submissions. Try again later."}, status_code=429)

        async with KomoruClient("http://komoru", "user-9", transport=transport) as client:
            with pytest.raises(httpx.HTTPStatusError):
                await client.submit_score("snake", 1)


class TestAgainstApp:
    @pytest.mark.asyncio
    async def test_full_flow(self, app):
        received: list[NotificationItem] = []

        async with KomoruClient("http://test", "player-a", transport=ASGITransport(app=app)) as client:
            client.delivery.register(received.append)

            data = await client.submit_score("snake", 600, username="Player A")
            assert data["score"] == 600
            assert [item.title for item in received] == ["First Game", "Welcome Aboard", "Snake Master"]

            stats = await client.get_achievement_stats()
            assert stats["unlocked_count"] == 3

            recent = await client.get_recent_unlocks(limit=1)
            assert len(recent["unlocks"]) == 1

            board = await client.get_leaderboard("snake")
            assert board["entries"][0]["username"] == "Player A"

            listing = await client.get_achievements()
            assert listing["total"] >= 3

            assert (await client.check_health())["status"] == "healthy"
