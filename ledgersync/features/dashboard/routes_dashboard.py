"""
Dashboard Routes Module

This module serves the live sales invoice dashboard and its refresh
signal.

Features:
- Dashboard snapshot
- Manual refresh
- Refresh trigger counter

Data Model:
- Resource state (data, loading, error, is_live, connection_status)
- Refresh trigger

Security:
- Bearer token required for live data

Dependencies:
- FastAPI for routing
- logging for tracking

Author: Ledger Sync Development Team
"""

import logging

from fastapi import Depends, HTTPException

from . import router
from ledgersync.shared.dependencies import get_live_session, get_session

logger = logging.getLogger(__name__)


def _dashboard(session):
    if session.dashboard is None:
        raise HTTPException(status_code=503, detail="Dashboard is not mounted")
    return session.dashboard


@router.get("")
async def get_dashboard(session=Depends(get_live_session)):
    """
    Get the current dashboard state.

    Returns:
        dict: Dashboard data plus loading, error and live flags

    Notes:
        - Served from the live resource, no fetch per request
        - error is set when the last fetch failed, data is the last good one
    """
    dashboard = _dashboard(session)
    return {"status": "success", "data": dashboard.snapshot().model_dump(mode="json")}


@router.post("/refresh")
async def refresh_dashboard(session=Depends(get_live_session)):
    """Refetch the dashboard now."""
    dashboard = _dashboard(session)
    try:
        await dashboard.refresh(show_loading=True)
        return {"status": "success", "data": dashboard.snapshot().model_dump(mode="json")}
    except Exception as e:
        logger.error(f"Error in refresh_dashboard: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/refresh-trigger")
async def get_refresh_trigger(session=Depends(get_session)):
    return {"status": "success", "data": {"refresh_trigger": session.orchestrator.refresh_trigger}}
