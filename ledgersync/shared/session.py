"""
Application Session Module

This module wires the upload queue, the import runner, the refresh
orchestrator and the live resources into one object owned by the app.

Features:
- Token scoped live resources
- Shared upload queue
- Debounced dashboard refresh after imports
- Orderly shutdown

Data Model:
- Auth token
- Upload queue store
- Dashboard and subscription live resources

Dependencies:
- APScheduler for timers
- asyncio for concurrent mounting
- logging for tracking

Author: Ledger Sync Development Team
"""

import asyncio
import logging
from typing import Optional

from ledgersync.shared.config import POLL_INTERVAL_SECONDS, REFRESH_DEBOUNCE_SECONDS
from ledgersync.features.billing.subscription_service import SUBSCRIPTION_RESOURCE
from ledgersync.features.dashboard.dashboard_service import DASHBOARD_RESOURCE
from ledgersync.features.dashboard.refresh_orchestrator import DashboardRefreshOrchestrator, DebouncedRefresh
from ledgersync.features.realtime.connection_manager import ConnectionManager, get_connection_manager
from ledgersync.features.realtime.live_resource import LiveResource, ResourceDefinition
from ledgersync.features.uploadqueue.import_service import ImportService, Uploader, import_file
from ledgersync.features.uploadqueue.queue_store import UploadQueueStore

logger = logging.getLogger(__name__)


class AppSession:
    """
    Everything one signed-in user's portal keeps in memory.

    Attributes:
        token: Current auth token, None until one is known
        store: Upload queue
        orchestrator: Refresh trigger bumped by imports
        import_service: Import runner for the queue
        dashboard: Dashboard live resource, None without a token
        subscription: Subscription live resource, None without a token
    """

    def __init__(
        self,
        manager: Optional[ConnectionManager] = None,
        scheduler=None,
        dashboard_definition: ResourceDefinition = DASHBOARD_RESOURCE,
        subscription_definition: ResourceDefinition = SUBSCRIPTION_RESOURCE,
        uploader: Uploader = import_file,
        poll_interval: float = POLL_INTERVAL_SECONDS,
        debounce_delay: float = REFRESH_DEBOUNCE_SECONDS
    ):
        self.manager = manager or get_connection_manager()
        self.scheduler = scheduler or self.manager.scheduler
        self.dashboard_definition = dashboard_definition
        self.subscription_definition = subscription_definition
        self.poll_interval = poll_interval
        self.debounce_delay = debounce_delay

        self.token: Optional[str] = None
        self.store = UploadQueueStore()
        self.orchestrator = DashboardRefreshOrchestrator()
        self.import_service = ImportService(self.store, self.orchestrator, uploader=uploader)
        self.dashboard: Optional[LiveResource] = None
        self.subscription: Optional[LiveResource] = None
        self._debounced_refresh: Optional[DebouncedRefresh] = None

    async def start(self, token: Optional[str] = None) -> None:
        """Mount the live resources for `token` (nothing to mount without one)."""
        self.token = token
        if token:
            await self._mount()
        else:
            logger.info("Session started without a token, live resources stay unmounted")

    async def set_token(self, token: Optional[str]) -> None:
        """Re-scope the session after login, logout or token refresh."""
        if token == self.token and (self.dashboard is not None or not token):
            return
        logger.info("Session token changed, remounting live resources")
        await self._unmount()
        self.token = token
        if token:
            await self._mount()

    async def close(self) -> None:
        await self._unmount()
        self.store.clear()
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
        logger.info("Session closed")

    async def _mount(self) -> None:
        self.dashboard = LiveResource(
            self.dashboard_definition,
            self.token,
            self.manager,
            scheduler=self.scheduler,
            poll_interval=self.poll_interval
        )
        self.subscription = LiveResource(
            self.subscription_definition,
            self.token,
            self.manager,
            scheduler=self.scheduler,
            poll_interval=self.poll_interval
        )
        dashboard = self.dashboard
        self._debounced_refresh = DebouncedRefresh(
            self.orchestrator,
            lambda: dashboard.refresh(show_loading=False),
            scheduler=self.scheduler,
            delay=self.debounce_delay
        )
        self._debounced_refresh.start()
        await asyncio.gather(self.dashboard.start(), self.subscription.start())

    async def _unmount(self) -> None:
        if self._debounced_refresh is not None:
            self._debounced_refresh.stop()
            self._debounced_refresh = None
        for resource in (self.dashboard, self.subscription):
            if resource is not None:
                await resource.stop()
        self.dashboard = None
        self.subscription = None
