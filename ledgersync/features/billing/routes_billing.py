"""
Subscription Routes Module

This module serves the live billing subscription and plan catalog.

Security:
- Bearer token required

Dependencies:
- FastAPI for routing
- logging for tracking

Author: Ledger Sync Development Team
"""

import logging

from fastapi import Depends, HTTPException

from . import router
from ledgersync.shared.dependencies import get_live_session

logger = logging.getLogger(__name__)


@router.get("")
async def get_subscription(session=Depends(get_live_session)):
    """Get the current subscription state."""
    if session.subscription is None:
        raise HTTPException(status_code=503, detail="Subscription is not mounted")
    return {"status": "success", "data": session.subscription.snapshot().model_dump(mode="json")}


@router.post("/refresh")
async def refresh_subscription(session=Depends(get_live_session)):
    if session.subscription is None:
        raise HTTPException(status_code=503, detail="Subscription is not mounted")
    try:
        await session.subscription.refresh(show_loading=True)
        return {"status": "success", "data": session.subscription.snapshot().model_dump(mode="json")}
    except Exception as e:
        logger.error(f"Error in refresh_subscription: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))
