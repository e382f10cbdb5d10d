"""Fire an action once the wall clock reaches an absolute target time.

The loop timer is armed for the remaining delay in a single shot. When it
fires, the wall clock is checked again and the timer is re-armed with at
least ``poll_interval`` if the target has not been reached yet, so an
action never runs before its target. Lateness is bounded by the poll
interval plus whatever scheduling jitter the event loop adds under load;
treat the target as a soft deadline.
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Callable, Optional

from .metrics import record_schedule_lateness
from .models import TargetTime

LOGGER = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 0.001

Clock = Callable[[], float]

_SLASH_FORMATS: tuple[str, ...] = (
    "%Y/%m/%d %H:%M:%S.%f",
    "%Y/%m/%d %H:%M:%S",
    "%Y/%m/%d %H:%M",
    "%Y/%m/%d",
)


def to_timestamp(value: TargetTime) -> float:
    """Convert a target time to POSIX seconds.

    Naive datetimes and strings without an offset are read as local time.
    Numbers, and numeric strings, are POSIX seconds.
    """

    if isinstance(value, datetime):
        return value.timestamp()
    if isinstance(value, bool):
        raise TypeError("Target time must be a datetime, number or string")
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        text = value.strip()
        try:
            return float(text)
        except ValueError:
            pass
        try:
            return datetime.fromisoformat(text.replace("Z", "+00:00")).timestamp()
        except ValueError:
            pass
        for fmt in _SLASH_FORMATS:
            try:
                return datetime.strptime(text, fmt).timestamp()
            except ValueError:
                continue
        raise ValueError(f"Unrecognised target time: {value!r}")
    raise TypeError("Target time must be a datetime, number or string")


def _iso(timestamp: float) -> str:
    return datetime.fromtimestamp(timestamp, timezone.utc).isoformat(timespec="milliseconds")


class ScheduledAction:
    """A single pending callback bound to an absolute target timestamp."""

    def __init__(
        self,
        callback: Callable[[], object],
        target: float,
        *,
        loop: asyncio.AbstractEventLoop,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        clock: Clock = time.time,
    ) -> None:
        if poll_interval <= 0:
            raise ValueError("poll_interval must be positive")
        self.callback = callback
        self.target = target
        self.poll_interval = poll_interval
        self.fired = False
        self.cancelled = False
        self.fired_at: Optional[float] = None
        self._loop = loop
        self._clock = clock
        self._handle: Optional[asyncio.Handle] = None

    @property
    def armed(self) -> bool:
        return self._handle is not None

    def _arm(self) -> None:
        remaining = self.target - self._clock()
        if remaining <= 0:
            self._handle = self._loop.call_soon(self._on_timer)
        else:
            self._handle = self._loop.call_later(remaining, self._on_timer)

    def _on_timer(self) -> None:
        self._handle = None
        if self.poll():
            return
        if self.fired or self.cancelled:
            return
        remaining = self.target - self._clock()
        self._handle = self._loop.call_later(max(remaining, self.poll_interval), self._on_timer)

    def poll(self) -> bool:
        """Check the clock once and fire if due; return True only on the firing check."""

        if self.fired or self.cancelled:
            return False
        now = self._clock()
        if now < self.target:
            return False
        self.fired = True
        self.fired_at = now
        self.cancel_timer()
        lateness = now - self.target
        LOGGER.debug(
            "Scheduled action fired at %s (%.3f ms late)",
            _iso(now),
            lateness * 1000,
            extra={"event": "schedule.fired", "lateness": lateness},
        )
        record_schedule_lateness(lateness)
        self.callback()
        return True

    def cancel_timer(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def cancel(self) -> None:
        """Disarm the action; a fired or cancelled action is left untouched."""

        if self.fired or self.cancelled:
            return
        self.cancelled = True
        self.cancel_timer()


def schedule_at(
    callback: Callable[[], object],
    target_time: TargetTime,
    *,
    loop: Optional[asyncio.AbstractEventLoop] = None,
    poll_interval: float = DEFAULT_POLL_INTERVAL,
    clock: Clock = time.time,
) -> ScheduledAction:
    """Run ``callback`` once, at the first check where ``clock() >= target_time``.

    The callback never runs inside this call, even for a target in the past;
    it is dispatched from the event loop like any other pending work.
    """

    if loop is None:
        loop = asyncio.get_running_loop()
    action = ScheduledAction(
        callback,
        to_timestamp(target_time),
        loop=loop,
        poll_interval=poll_interval,
        clock=clock,
    )
    action._arm()
    return action


async def wait_until(
    target_time: TargetTime,
    *,
    poll_interval: float = DEFAULT_POLL_INTERVAL,
    clock: Clock = time.time,
) -> float:
    """Suspend until ``target_time`` has been reached; return the firing timestamp."""

    loop = asyncio.get_running_loop()
    reached: asyncio.Future[float] = loop.create_future()

    def _release() -> None:
        if not reached.done():
            fired_at = action.fired_at
            reached.set_result(fired_at if fired_at is not None else clock())

    action = schedule_at(_release, target_time, loop=loop, poll_interval=poll_interval, clock=clock)
    try:
        return await reached
    finally:
        action.cancel()


__all__ = [
    "DEFAULT_POLL_INTERVAL",
    "ScheduledAction",
    "schedule_at",
    "to_timestamp",
    "wait_until",
]
