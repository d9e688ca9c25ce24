"""
Sweep scheduling for Commit Watch.

Named timers drive periodic sweep pairs (commits, then releases). A timer
re-arms only after the sweep it started has settled, and cancelling a timer
never interrupts a sweep that is already running.
"""

import asyncio
import time
from typing import Any

import structlog

from ..auth import AuthManager
from ..config import PollingConfig
from ..models import ChangeKind
from .feed import NotificationFeedChecker
from .orchestrator import PollingOrchestrator

logger = structlog.get_logger(__name__)

ALARM_NAME = "commit-check-alarm"


class SweepScheduler:
    """Periodic trigger for sweeps, built on asyncio tasks."""

    def __init__(
        self,
        orchestrator: PollingOrchestrator,
        auth_manager: AuthManager,
        config: PollingConfig | None = None,
        feed_checker: NotificationFeedChecker | None = None,
    ):
        self.orchestrator = orchestrator
        self.auth_manager = auth_manager
        self.config = config or PollingConfig()
        self.feed_checker = feed_checker
        self._timers: dict[str, asyncio.Task[None]] = {}
        self._next_fire: dict[str, float] = {}
        self._periods: dict[str, float] = {}
        self._in_flight: asyncio.Task[bool] | None = None

    def arm(
        self,
        name: str = ALARM_NAME,
        period_minutes: float | None = None,
        delay_minutes: float | None = None,
    ) -> None:
        """
        Start (or restart) a periodic timer.

        Args:
            name: Timer name; arming an existing name replaces it
            period_minutes: Time between the end of one sweep pair and the
                start of the next
            delay_minutes: Time before the first fire
        """
        period = period_minutes or self.config.default_interval_minutes
        delay = (
            delay_minutes
            if delay_minutes is not None
            else self.config.first_sweep_delay_minutes
        )
        self.disarm(name)

        self._periods[name] = period
        self._next_fire[name] = time.time() + delay * 60
        self._timers[name] = asyncio.create_task(
            self._run_timer(name, period * 60, delay * 60), name=name
        )
        logger.info("Scheduler armed", name=name, period_minutes=period, delay_minutes=delay)

    def disarm(self, name: str = ALARM_NAME) -> bool:
        """
        Cancel a timer. A sweep it already started keeps running.

        Returns:
            True if a timer was cancelled
        """
        task = self._timers.pop(name, None)
        self._next_fire.pop(name, None)
        self._periods.pop(name, None)
        if task is None:
            return False
        task.cancel()
        logger.info("Scheduler disarmed", name=name)
        return True

    def is_armed(self, name: str = ALARM_NAME) -> bool:
        task = self._timers.get(name)
        return task is not None and not task.done()

    def get_status(self) -> dict[str, Any]:
        return {
            name: {
                "period_minutes": self._periods.get(name),
                "next_fire": self._next_fire.get(name),
            }
            for name in self._timers
        }

    async def _run_timer(self, name: str, period_seconds: float, delay_seconds: float) -> None:
        await asyncio.sleep(delay_seconds)
        while True:
            try:
                active = await asyncio.shield(self._start_sweeps())
            except Exception as e:
                # The timer keeps running; the next fire retries
                logger.error("Scheduled sweep failed", name=name, error=str(e))
                await self.orchestrator.record_error(e)
                active = True
            if not active:
                logger.info("No platform authenticated, stopping scheduler", name=name)
                if self._timers.get(name) is asyncio.current_task():
                    self._timers.pop(name, None)
                    self._next_fire.pop(name, None)
                    self._periods.pop(name, None)
                return
            self._next_fire[name] = time.time() + period_seconds
            await asyncio.sleep(period_seconds)

    def _start_sweeps(self) -> asyncio.Task[bool]:
        if self._in_flight is None or self._in_flight.done():
            self._in_flight = asyncio.create_task(self.run_once())
        return self._in_flight

    async def run_once(self) -> bool:
        """
        Run a commit sweep, a release sweep and a notifications feed pass.

        Returns:
            False if no platform is authenticated and nothing ran
        """
        if not await self.auth_manager.is_any_authenticated():
            return False
        await self.orchestrator.run_sweep(ChangeKind.COMMITS)
        await self.orchestrator.run_sweep(ChangeKind.RELEASES)
        if self.feed_checker is not None:
            await self.feed_checker.check()
        return True

    async def trigger(self) -> bool:
        """Run a manual sweep pair, joining one already in flight."""
        return await asyncio.shield(self._start_sweeps())

    async def shutdown(self) -> None:
        """Cancel every timer and wait for a running sweep to settle."""
        timers = list(self._timers.values())
        for name in list(self._timers):
            self.disarm(name)
        await asyncio.gather(*timers, return_exceptions=True)

        if self._in_flight is not None and not self._in_flight.done():
            await asyncio.gather(self._in_flight, return_exceptions=True)
