"""HTTP client for the Komoru API.

Score submissions may carry newly unlocked achievements; those are handed
to the client's ``AchievementDelivery`` so the UI can queue notifications.
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from komoru.client.delivery import AchievementDelivery

logger = structlog.get_logger()

DEFAULT_TIMEOUT = 10.0


class KomoruClient:
    """Async API client for one signed-in user."""

    def __init__(
        self,
        base_url: str,
        user_id: str,
        delivery: AchievementDelivery | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.user_id = user_id
        self.delivery = delivery or AchievementDelivery()
        self._http = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            transport=transport,
            headers={
                "Accept": "application/json",
                "X-User-Id": user_id,
            },
        )

    async def __aenter__(self) -> KomoruClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:  # noqa: ANN401
        try:
            response = await self._http.request(method, path, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.error(
                "api_error",
                method=method,
                path=path,
                status=exc.response.status_code,
                body=exc.response.text[:500],
            )
            raise
        except httpx.RequestError as exc:
            logger.error("api_request_failed", method=method, path=path, error=str(exc))
            raise
        return response.json()

    async def submit_score(
        self,
        game_id: str,
        score: int,
        metadata: dict[str, Any] | None = None,
        username: str | None = None,
    ) -> dict[str, Any]:
        """Save a score. Unlocked achievements in the response are delivered."""
        body: dict[str, Any] = {"score": score, "metadata": metadata or {}}
        if username:
            body["username"] = username

        data = await self._request("POST", f"/api/games/{game_id}/scores", json=body)

        unlocked = data.get("achievements") or []
        if unlocked:
            delivered = self.delivery.deliver(unlocked)
            logger.info("achievements_delivered", game_id=game_id, received=len(unlocked), delivered=delivered)
        return data

    async def get_leaderboard(self, game_id: str, limit: int | None = None) -> dict[str, Any]:
        params = {"limit": limit} if limit else None
        return await self._request("GET", f"/api/games/{game_id}/leaderboard", params=params)

    async def get_achievements(self) -> dict[str, Any]:
        return await self._request("GET", "/api/achievements")

    async def get_recent_unlocks(self, limit: int | None = None) -> dict[str, Any]:
        params = {"limit": limit} if limit else None
        return await self._request("GET", "/api/achievements/recent", params=params)

    async def get_achievement_stats(self) -> dict[str, Any]:
        return await self._request("GET", "/api/achievements/stats")

    async def check_health(self) -> dict[str, Any]:
        return await self._request("GET", "/api/health")
