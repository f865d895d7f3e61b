"""
Dashboard Service Module

This module fetches the sales invoice dashboard and describes it as a
live resource.

Features:
- Dashboard fetch
- Push payload unwrapping

Data Model:
- Dashboard data {summary, invoices, regionWise, ...}
- Push envelope {success, data}

Dependencies:
- aiohttp via ApiClient
- logging for tracking

Author: Ledger Sync Development Team
"""

import logging
from typing import Any, Dict, Optional

from ledgersync.shared.api_client import ApiClient, unwrap_envelope
from ledgersync.features.realtime.live_resource import ResourceDefinition, unwrap_push_envelope

logger = logging.getLogger(__name__)

DASHBOARD_ENDPOINT = "/dashboard/sales-invoice"
DASHBOARD_EVENTS = ("dashboard:update", "sales-invoice-dashboard:update")
ERROR_DASHBOARD_FETCH = "Failed to fetch dashboard data"


async def fetch_dashboard(token: str, client: Optional[ApiClient] = None) -> Dict[str, Any]:
    """
    Get the current sales invoice dashboard.

    Args:
        token: Bearer token
        client: Optional preconfigured API client

    Returns:
        dict: Dashboard data

    Raises:
        ApiError: When the request fails or the envelope reports failure
    """
    client = client or ApiClient(token)
    payload = await client.get(DASHBOARD_ENDPOINT)
    return unwrap_envelope(payload, ERROR_DASHBOARD_FETCH)


DASHBOARD_RESOURCE = ResourceDefinition(
    name="dashboard",
    fetch=fetch_dashboard,
    events=DASHBOARD_EVENTS,
    error_message=ERROR_DASHBOARD_FETCH,
    unwrap_push=unwrap_push_envelope
)
