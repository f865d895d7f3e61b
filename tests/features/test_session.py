"""
Test Application Session Module

This module tests session wiring including:
- Mounting live resources for a token
- Re-scoping on token change
- Import completion refreshing the dashboard
- Shutdown
"""

import pytest

from ledgersync.features.realtime.live_resource import ResourceDefinition
from ledgersync.shared.session import AppSession
from tests.conftest import ScriptedFetcher, make_file, settle


def make_session(manager, scheduler, dashboard_fetch, subscription_fetch, uploader=None):
    kwargs = {}
    if uploader is not None:
        kwargs["uploader"] = uploader
    return AppSession(
        manager=manager,
        scheduler=scheduler,
        dashboard_definition=ResourceDefinition("dashboard", dashboard_fetch, ("dashboard:update",), "Failed to fetch dashboard data"),
        subscription_definition=ResourceDefinition("subscription", subscription_fetch, ("subscription:update",), "Failed to fetch subscription data"),
        debounce_delay=2,
        **kwargs
    )


@pytest.mark.asyncio
async def test_start_without_token_mounts_nothing(manager, scheduler):
    dashboard_fetch = ScriptedFetcher({"summary": {}})
    session = make_session(manager, scheduler, dashboard_fetch, ScriptedFetcher({}))

    await session.start(None)

    assert session.dashboard is None
    assert session.subscription is None
    assert dashboard_fetch.calls == []


@pytest.mark.asyncio
async def test_token_change_remounts_resources(manager, scheduler, client_factory):
    """Test that a new token rebuilds resources and the channel"""
    dashboard_fetch = ScriptedFetcher({"summary": {"total": 1}})
    subscription_fetch = ScriptedFetcher({"subscription": {"plan": "free"}})
    session = make_session(manager, scheduler, dashboard_fetch, subscription_fetch)

    await session.start("first-token")
    await settle()
    first_dashboard = session.dashboard
    assert first_dashboard.data == {"summary": {"total": 1}}
    assert session.subscription.is_live
    assert len(client_factory.clients) == 1

    await session.set_token("first-token")
    assert session.dashboard is first_dashboard

    await session.set_token("second-token")
    await settle()

    assert session.dashboard is not first_dashboard
    assert not first_dashboard.mounted
    assert dashboard_fetch.calls == ["first-token", "second-token"]
    assert subscription_fetch.calls == ["first-token", "second-token"]
    assert client_factory.clients[0].disconnect_calls == 1
    assert client_factory.last.connect_calls[0]["auth"] == {"token": "second-token"}
    assert manager.ref_count == 2

    await session.set_token(None)
    assert session.dashboard is None
    assert manager.ref_count == 0

    await session.close()


@pytest.mark.asyncio
async def test_import_completion_schedules_dashboard_refresh(manager, scheduler):
    """Test import -> trigger -> debounced soft refetch"""
    dashboard_fetch = ScriptedFetcher({"summary": {"total": 1}}, {"summary": {"total": 4}})

    async def uploader(token, file):
        return {"success": True, "importedCount": 3}

    session = make_session(manager, scheduler, dashboard_fetch, ScriptedFetcher({}), uploader=uploader)
    await session.start("tok")
    await settle()

    session.store.admit([make_file("a.xlsx", 1, 1), make_file("b.xlsx", 2, 2)])
    summary = await session.import_service.import_pending("tok")

    assert summary.imported_count == 6
    assert session.orchestrator.refresh_trigger == 2
    refresh_jobs = [job for job in scheduler.get_jobs() if job.id.startswith("dashboard-refresh:")]
    assert len(refresh_jobs) == 1

    await refresh_jobs[0].func()
    assert session.dashboard.data == {"summary": {"total": 4}}
    assert session.dashboard.loading is False

    await session.close()


@pytest.mark.asyncio
async def test_close_clears_queue_and_stops_scheduler(manager, scheduler):
    session = make_session(manager, scheduler, ScriptedFetcher({}), ScriptedFetcher({}))
    await session.start("tok")
    await settle()
    session.store.admit([make_file()])

    await session.close()

    assert len(session.store) == 0
    assert session.dashboard is None
    assert manager.ref_count == 0
    assert not scheduler.running
