"""Single-subscriber delivery of unlocked achievements to the UI layer.

The API client owns one ``AchievementDelivery``; the application registers
its notification sink once at startup. Registering again replaces the
previous subscriber.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from pydantic import ValidationError

from komoru.client.notifications import NotificationItem, NotificationScheduler

logger = logging.getLogger(__name__)

Subscriber = Callable[[NotificationItem], Any]


class AchievementDelivery:
    """Validates unlock payloads and forwards them to the registered subscriber."""

    def __init__(self) -> None:
        self._subscriber: Subscriber | None = None
        self._token: object | None = None

    @property
    def has_subscriber(self) -> bool:
        return self._subscriber is not None

    def register(self, subscriber: Subscriber) -> Callable[[], None]:
        """Set the subscriber. Returns a function that unregisters it.

        The returned function only removes this registration; once another
        subscriber has replaced it, calling it does nothing.
        """
        if self._subscriber is not None:
            logger.debug("Replacing achievement subscriber %r", self._subscriber)
        token = object()
        self._subscriber = subscriber
        self._token = token

        def unregister() -> None:
            if self._token is token:
                self._subscriber = None
                self._token = None

        return unregister

    def deliver(self, payloads: Iterable[Mapping[str, Any]]) -> int:
        """Forward each valid payload. Malformed ones are logged and dropped.

        A subscriber error is logged and skips only that item. Returns the
        number of items the subscriber accepted.
        """
        subscriber = self._subscriber
        if subscriber is None:
            logger.warning("Unlocked achievements received with no subscriber registered; dropped")
            return 0

        delivered = 0
        for payload in payloads:
            try:
                item = NotificationItem.model_validate(payload)
            except ValidationError as exc:
                logger.warning("Dropping malformed achievement payload %r: %s", payload, exc.errors())
                continue
            try:
                subscriber(item)
            except Exception:
                logger.exception("Achievement subscriber failed for %r", item.title)
                continue
            delivered += 1
        return delivered


def connect_scheduler(delivery: AchievementDelivery, scheduler: NotificationScheduler) -> Callable[[], None]:
    """Route delivered achievements into the scheduler. Returns the unregister function."""
    return delivery.register(scheduler.enqueue)
