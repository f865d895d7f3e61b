"""
Dashboard Refresh Orchestrator Module

This module tells dashboard consumers that their data may be stale after
an import finishes, and collapses bursts of such signals into a single
refetch.

Features:
- Monotonic refresh trigger
- Watcher registration
- Debounced soft refresh

Data Model:
- Refresh trigger counter
- Watcher callbacks
- One pending debounce job per consumer

Dependencies:
- APScheduler for the debounce timer
- logging for tracking

Author: Ledger Sync Development Team
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, List, Optional

from ledgersync.shared.config import REFRESH_DEBOUNCE_SECONDS
from ledgersync.shared.scheduler import cancel_job, create_scheduler, ensure_scheduler_running

logger = logging.getLogger(__name__)

Watcher = Callable[[int], Any]


class DashboardRefreshOrchestrator:
    """
    Counter bumped on every finished import, success or not.

    Attributes:
        refresh_trigger: Starts at 0 and only ever grows
    """

    def __init__(self):
        self.refresh_trigger = 0
        self._watchers: List[Watcher] = []

    def trigger_refresh(self) -> int:
        self.refresh_trigger += 1
        logger.debug(f"Dashboard refresh triggered (#{self.refresh_trigger})")
        for watcher in list(self._watchers):
            try:
                watcher(self.refresh_trigger)
            except Exception as e:
                logger.error(f"Error in refresh watcher: {str(e)}")
        return self.refresh_trigger

    def watch(self, callback: Watcher) -> Callable[[], None]:
        """Call `callback(trigger)` on every trigger. Returns an unwatch function."""
        self._watchers.append(callback)

        def unwatch() -> None:
            if callback in self._watchers:
                self._watchers.remove(callback)

        return unwatch


class DebouncedRefresh:
    """
    Soft refetch of a dashboard consumer, at most once per quiet window.

    Every trigger pushes the single scheduled run `delay` seconds out, so N
    triggers close together cause one refetch.
    """

    def __init__(
        self,
        orchestrator: DashboardRefreshOrchestrator,
        refresh: Callable[[], Awaitable[Any]],
        scheduler=None,
        delay: float = REFRESH_DEBOUNCE_SECONDS
    ):
        self.orchestrator = orchestrator
        self.refresh = refresh
        self.scheduler = scheduler or create_scheduler()
        self.delay = delay
        self._unwatch: Optional[Callable[[], None]] = None
        self._job_id = f"dashboard-refresh:{id(self)}"

    @property
    def pending(self) -> bool:
        return self.scheduler.get_job(self._job_id) is not None

    def start(self) -> None:
        if self._unwatch is None:
            self._unwatch = self.orchestrator.watch(self._on_trigger)

    def stop(self) -> None:
        if self._unwatch is not None:
            self._unwatch()
            self._unwatch = None
        cancel_job(self.scheduler, self._job_id)

    def _on_trigger(self, trigger: int) -> None:
        if trigger <= 0:
            return
        ensure_scheduler_running(self.scheduler)
        self.scheduler.add_job(
            self._fire,
            "date",
            run_date=datetime.now(timezone.utc) + timedelta(seconds=self.delay),
            id=self._job_id,
            replace_existing=True
        )

    async def _fire(self) -> None:
        logger.info("Refreshing dashboard after import")
        try:
            await self.refresh()
        except Exception as e:
            logger.error(f"Error in debounced dashboard refresh: {str(e)}")
