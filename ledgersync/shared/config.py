"""
Configuration Module

This module manages configuration settings and environment variables
for the live sync client and the import queue.

Features:
- Environment loading
- API and socket endpoints
- Polling and debounce intervals
- Reconnection policy
- Request timeouts

Data Model:
- Endpoint URLs
- Auth token
- Timer intervals
- Retry limits

Dependencies:
- os for env
- dotenv for loading

Author: Ledger Sync Development Team
"""

import os
import re
from typing import Optional
from dotenv import load_dotenv

load_dotenv()

# REST API Configuration
API_BASE_URL = (os.getenv('LEDGERSYNC_API_BASE_URL') or "http://localhost:5000/api").strip().rstrip('/')
REQUEST_TIMEOUT_SECONDS = float(os.getenv('LEDGERSYNC_REQUEST_TIMEOUT', "30"))

# Live Channel Configuration
SOCKET_URL = (os.getenv('LEDGERSYNC_SOCKET_URL') or "").strip().rstrip('/') or None
SOCKET_TRANSPORTS = ["websocket", "polling"]  # Prefer websocket, fall back to long-polling
CONNECT_TIMEOUT_SECONDS = 10

# Session Configuration
AUTH_TOKEN = os.getenv('LEDGERSYNC_AUTH_TOKEN') or None
LOG_LEVEL = os.getenv('LEDGERSYNC_LOG_LEVEL', "INFO").upper()

# Sync Timers
POLL_INTERVAL_SECONDS = 30  # Fallback polling while the live channel is down
REFRESH_DEBOUNCE_SECONDS = 2  # Quiet period before refetching after imports

# Reconnection Policy
RECONNECT_ATTEMPTS = 5
RECONNECT_DELAY_SECONDS = 1
RECONNECT_DELAY_MAX_SECONDS = 30
RECONNECT_JITTER = 0.5
LIVE_RETRY_INTERVAL_SECONDS = 300  # Periodic live upgrade after retries run out


def get_socket_url(api_base_url: Optional[str] = None) -> Optional[str]:
    """
    Resolve the live channel URL.

    Args:
        api_base_url: Override for the REST base URL

    Returns:
        str: Socket URL, or None when nothing is configured

    Notes:
        - Explicit LEDGERSYNC_SOCKET_URL wins
        - Otherwise the REST base URL minus its /api suffix
    """
    if SOCKET_URL and api_base_url is None:
        return SOCKET_URL

    base = (api_base_url if api_base_url is not None else API_BASE_URL) or ""
    base = base.strip().rstrip('/')
    if not base:
        return None
    return re.sub(r"/api$", "", base)
