"""
Subscription Service Module

This module fetches the billing subscription and plan catalog and
describes them as a live resource.

Dependencies:
- aiohttp via ApiClient

Author: Ledger Sync Development Team
"""

from typing import Any, Dict, Optional

from ledgersync.shared.api_client import ApiClient, unwrap_envelope
from ledgersync.features.realtime.live_resource import ResourceDefinition, unwrap_push_envelope

SUBSCRIPTION_ENDPOINT = "/billing/subscription"
SUBSCRIPTION_EVENTS = ("subscription:update", "billing:update")
ERROR_SUBSCRIPTION_FETCH = "Failed to fetch subscription data"


async def fetch_subscription(token: str, client: Optional[ApiClient] = None) -> Dict[str, Any]:
    """Get the current subscription and catalog ({subscription, catalog})."""
    client = client or ApiClient(token)
    payload = await client.get(SUBSCRIPTION_ENDPOINT)
    return unwrap_envelope(payload, ERROR_SUBSCRIPTION_FETCH)


SUBSCRIPTION_RESOURCE = ResourceDefinition(
    name="subscription",
    fetch=fetch_subscription,
    events=SUBSCRIPTION_EVENTS,
    error_message=ERROR_SUBSCRIPTION_FETCH,
    unwrap_push=unwrap_push_envelope
)
