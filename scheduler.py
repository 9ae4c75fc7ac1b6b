"""Polling scheduler and request pacing for the SESAME unlock notifier.

The scheduler triggers a check run at a fixed interval, backing off to
a slower interval during quiet hours. The pacer spaces out consecutive
requests to the SESAME API, which rate-limits bursts.
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime

from config import PollConfig

_LOGGER = logging.getLogger(__name__)


class RequestPacer:
    """Enforces a minimum interval between consecutive requests."""

    def __init__(self, min_interval_sec: float, clock=time.monotonic, sleep=asyncio.sleep):
        self._min_interval = max(0.0, min_interval_sec)
        self._clock = clock
        self._sleep = sleep
        self._last: float | None = None

    @property
    def min_interval(self) -> float:
        return self._min_interval

    async def wait(self) -> None:
        """Block until the next request may be issued, then mark it issued."""
        if self._last is not None:
            remaining = self._min_interval - (self._clock() - self._last)
            if remaining > 0:
                await self._sleep(remaining)
        self._last = self._clock()


class PollScheduler:
    """Runs a poll callback on a fixed interval."""

    def __init__(self, poll_config: PollConfig, now=datetime.now):
        self._config = poll_config
        self._now = now
        self._last_poll_time: float = 0
        self._running = False

    def _is_quiet_hours(self) -> bool:
        """Check if we're in quiet hours."""
        hour = self._now().hour
        start = self._config.quiet_hours_start
        end = self._config.quiet_hours_end
        if start == end:
            return False
        if start < end:
            return start <= hour < end
        # Wraps around midnight
        return hour >= start or hour < end

    def get_next_poll_interval(self) -> float:
        """Calculate the next poll interval in seconds."""
        if self._is_quiet_hours():
            interval = self._config.quiet_interval_sec
            mode = "quiet"
        else:
            interval = self._config.interval_sec
            mode = "normal"
        _LOGGER.debug("Poll mode: %s, interval: %ds", mode, interval)
        return float(interval)

    def mark_polled(self) -> None:
        self._last_poll_time = time.monotonic()

    async def run(self, poll_callback, run_immediately: bool = True) -> None:
        """Run the polling loop until stopped."""
        self._running = True
        _LOGGER.info("Scheduler started")

        first = run_immediately
        while self._running:
            try:
                if not first:
                    await asyncio.sleep(self.get_next_poll_interval())
                first = False
                if self._running:
                    try:
                        await poll_callback()
                        self.mark_polled()
                    except Exception as e:
                        _LOGGER.error("Poll callback error: %s", e)
            except asyncio.CancelledError:
                break

        _LOGGER.info("Scheduler stopped")

    def stop(self) -> None:
        """Stop the scheduler."""
        self._running = False

    def get_status(self) -> dict:
        """Get scheduler status for diagnostics."""
        return {
            "mode": "quiet" if self._is_quiet_hours() else "normal",
            "next_interval_sec": self.get_next_poll_interval(),
            "last_poll_ago_sec": (
                round(time.monotonic() - self._last_poll_time, 1)
                if self._last_poll_time else None
            ),
        }
