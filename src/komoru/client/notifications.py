"""Sequential achievement notification scheduler.

A single-consumer FIFO that turns unlock payloads arriving at arbitrary
times into one-at-a-time, timed, dismissible notifications:

    IDLE --enqueue--> SHOWING --dismiss/timeout--> LEAVING --grace--> SHOWING | IDLE

LEAVING covers the exit animation; items enqueued meanwhile only join the
queue. Exactly one timer handle is owned at any time, and every timer
callback is tagged with the generation of the item it was armed for, so a
timeout can never dismiss an item other than the one it was started for.

Runs on a single event loop thread. ``enqueue`` and ``dismiss`` are
synchronous and never suspend, so producers on the same loop cannot
interleave inside a queue update.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import time
from collections import deque
from collections.abc import Callable
from typing import Any, Protocol

from pydantic import BaseModel, ConfigDict, Field

from komoru.config import Settings, get_settings

logger = logging.getLogger(__name__)

DEFAULT_DURATION = 5.0
DEFAULT_EXIT_GRACE = 0.3


class NotificationItem(BaseModel):
    """One unlock notification. Built from the server's unlocked-achievement payload."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: int
    title: str = Field(min_length=1)
    icon: str = Field(min_length=1)
    xp_reward: int = Field(ge=0)
    description: str | None = None
    enqueued_at: float = Field(default_factory=time.monotonic)


class SchedulerState(str, enum.Enum):
    IDLE = "idle"
    SHOWING = "showing"
    LEAVING = "leaving"


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


CallLater = Callable[[float, Callable[[], Any]], TimerHandle]


def _loop_call_later(delay: float, callback: Callable[[], Any]) -> TimerHandle:
    return asyncio.get_running_loop().call_later(delay, callback)


class NotificationScheduler:
    """Shows queued notifications one at a time, in arrival order.

    Args:
        on_show: called with the item that becomes visible.
        on_hide: called with the item that is leaving the screen.
        duration: seconds an item stays up unless dismissed earlier.
        exit_grace: pause between hiding one item and showing the next.
        call_later: timer source, ``(delay, callback) -> handle``. Defaults
            to the running asyncio loop.
    """

    def __init__(
        self,
        on_show: Callable[[NotificationItem], Any],
        on_hide: Callable[[NotificationItem], Any] | None = None,
        duration: float = DEFAULT_DURATION,
        exit_grace: float = DEFAULT_EXIT_GRACE,
        call_later: CallLater | None = None,
    ) -> None:
        if duration <= 0:
            msg = "duration must be positive"
            raise ValueError(msg)
        if exit_grace < 0:
            msg = "exit_grace must not be negative"
            raise ValueError(msg)

        self._on_show = on_show
        self._on_hide = on_hide
        self.duration = duration
        self.exit_grace = exit_grace
        self._call_later = call_later or _loop_call_later

        self._queue: deque[NotificationItem] = deque()
        self._state = SchedulerState.IDLE
        self._current: NotificationItem | None = None
        self._timer: TimerHandle | None = None
        self._generation = 0
        self._closed = False

    @classmethod
    def from_settings(
        cls,
        on_show: Callable[[NotificationItem], Any],
        on_hide: Callable[[NotificationItem], Any] | None = None,
        settings: Settings | None = None,
        call_later: CallLater | None = None,
    ) -> NotificationScheduler:
        """Build a scheduler timed by ``notification_*`` settings."""
        settings = settings or get_settings()
        return cls(
            on_show=on_show,
            on_hide=on_hide,
            duration=settings.notification_duration_seconds,
            exit_grace=settings.notification_exit_grace_seconds,
            call_later=call_later,
        )

    # -- introspection --

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def current(self) -> NotificationItem | None:
        return self._current

    @property
    def pending(self) -> int:
        """Items waiting behind the one showing."""
        return len(self._queue)

    @property
    def closed(self) -> bool:
        return self._closed

    # -- operations --

    def enqueue(self, item: NotificationItem) -> None:
        """Append to the queue; show immediately if nothing is on screen.

        Never preempts the item currently showing.
        """
        if self._closed:
            logger.warning("Notification %r dropped: scheduler is closed", item.title)
            return

        self._queue.append(item)
        if self._state is SchedulerState.IDLE:
            self._show_next()

    def dismiss(self) -> bool:
        """Hide the current item (manual close or timeout).

        Returns False if nothing was showing.
        """
        if self._state is not SchedulerState.SHOWING or self._current is None:
            return False

        self._cancel_timer()
        item = self._current
        self._current = None
        self._state = SchedulerState.LEAVING
        self._notify(self._on_hide, item)

        if self.exit_grace > 0:
            generation = self._generation
            self._timer = self._call_later(self.exit_grace, lambda: self._after_exit(generation))
        else:
            self._after_exit(self._generation)
        return True

    def clear_all(self) -> None:
        """Drop everything queued, cancel the pending timer and go idle."""
        self._cancel_timer()
        self._queue.clear()
        item = self._current
        self._current = None
        self._state = SchedulerState.IDLE
        self._generation += 1
        if item is not None:
            self._notify(self._on_hide, item)

    def close(self) -> None:
        """Tear down: clear and refuse further items."""
        self.clear_all()
        self._closed = True

    async def __aenter__(self) -> NotificationScheduler:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.close()

    # -- transitions --

    def _show_next(self) -> None:
        item = self._queue.popleft()
        self._generation += 1
        generation = self._generation
        self._current = item
        self._state = SchedulerState.SHOWING
        self._timer = self._call_later(self.duration, lambda: self._auto_dismiss(generation))
        self._notify(self._on_show, item)

    def _auto_dismiss(self, generation: int) -> None:
        if generation != self._generation or self._state is not SchedulerState.SHOWING:
            return  # stale timer for an item that is already gone
        self._timer = None
        self.dismiss()

    def _after_exit(self, generation: int) -> None:
        if generation != self._generation or self._state is not SchedulerState.LEAVING:
            return
        self._timer = None
        if self._queue:
            self._show_next()
        else:
            self._state = SchedulerState.IDLE

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    @staticmethod
    def _notify(callback: Callable[[NotificationItem], Any] | None, item: NotificationItem) -> None:
        if callback is None:
            return
        try:
            callback(item)
        except Exception:
            # A broken renderer must not wedge the queue.
            logger.exception("Notification callback failed for %r", item.title)
