"""
Test Dashboard Refresh Module

This module tests dashboard refresh signaling including:
- Monotonic refresh trigger
- Watchers
- Debounced refetch
"""

import asyncio

import pytest

from ledgersync.features.dashboard.refresh_orchestrator import DashboardRefreshOrchestrator, DebouncedRefresh


class RefreshRecorder:
    def __init__(self):
        self.calls = 0

    async def __call__(self):
        self.calls += 1


def test_trigger_is_monotonic_and_notifies_watchers():
    """Test trigger counting and watcher fan-out"""
    orchestrator = DashboardRefreshOrchestrator()
    seen = []

    def broken(trigger):
        raise RuntimeError("watcher bug")

    orchestrator.watch(broken)
    unwatch = orchestrator.watch(seen.append)

    assert orchestrator.refresh_trigger == 0
    assert orchestrator.trigger_refresh() == 1
    assert orchestrator.trigger_refresh() == 2
    assert seen == [1, 2]

    unwatch()
    unwatch()
    orchestrator.trigger_refresh()
    assert seen == [1, 2]
    assert orchestrator.refresh_trigger == 3


@pytest.mark.asyncio
async def test_burst_of_triggers_collapses_into_one_job(scheduler):
    """Test that N triggers inside the window schedule one refetch"""
    orchestrator = DashboardRefreshOrchestrator()
    refresh = RefreshRecorder()
    debounced = DebouncedRefresh(orchestrator, refresh, scheduler=scheduler, delay=2)
    debounced.start()

    for _ in range(5):
        orchestrator.trigger_refresh()

    jobs = scheduler.get_jobs()
    assert len(jobs) == 1
    assert debounced.pending

    await jobs[0].func()
    assert refresh.calls == 1


@pytest.mark.asyncio
async def test_debounced_refresh_fires_after_quiet_period(scheduler):
    orchestrator = DashboardRefreshOrchestrator()
    refresh = RefreshRecorder()
    debounced = DebouncedRefresh(orchestrator, refresh, scheduler=scheduler, delay=0.05)
    debounced.start()

    orchestrator.trigger_refresh()
    orchestrator.trigger_refresh()
    orchestrator.trigger_refresh()
    await asyncio.sleep(0.5)

    assert refresh.calls == 1
    assert not debounced.pending


@pytest.mark.asyncio
async def test_stop_cancels_pending_refresh(scheduler):
    orchestrator = DashboardRefreshOrchestrator()
    refresh = RefreshRecorder()
    debounced = DebouncedRefresh(orchestrator, refresh, scheduler=scheduler, delay=2)
    debounced.start()
    debounced.start()

    orchestrator.trigger_refresh()
    debounced.stop()

    assert not debounced.pending
    orchestrator.trigger_refresh()
    assert not debounced.pending
    assert refresh.calls == 0


@pytest.mark.asyncio
async def test_refresh_errors_are_logged(scheduler):
    orchestrator = DashboardRefreshOrchestrator()

    async def failing():
        raise RuntimeError("Network Error")

    debounced = DebouncedRefresh(orchestrator, failing, scheduler=scheduler, delay=2)
    debounced.start()
    orchestrator.trigger_refresh()

    await scheduler.get_jobs()[0].func()
