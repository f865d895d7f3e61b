"""
Auth Helpers Module

Bearer token extraction for the HTTP surface. Authentication itself is
owned by the backend; this side only forwards the token it was given.
"""

import logging
from typing import Optional

from fastapi import HTTPException, Request

logger = logging.getLogger(__name__)


def extract_token_from_header(auth_header: Optional[str]) -> Optional[str]:
    """
    Extract the bearer token from an Authorization header.

    Args:
        auth_header: Authorization header value

    Returns:
        str: Token or None

    Notes:
        - Handles Bearer token format
        - Returns None if invalid format
    """
    if not auth_header or not auth_header.startswith('Bearer '):
        return None
    token = auth_header.split(' ', 1)[1].strip()
    return token or None


async def require_bearer_token(request: Request) -> str:
    """
    Get the bearer token of the current request.

    Raises:
        HTTPException: 401 when the header is missing or malformed
    """
    token = extract_token_from_header(request.headers.get("Authorization"))
    if not token:
        logger.warning(f"Missing bearer token for {request.url.path}")
        raise HTTPException(status_code=401, detail="Could not validate credentials")
    return token
