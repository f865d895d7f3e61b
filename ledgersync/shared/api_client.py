"""
API Client Module

This module provides async access to the invoice backend REST API used
by the dashboard, subscription and import features.

Features:
- Bearer token auth
- JSON requests
- Multipart file uploads
- Envelope unwrapping
- Error normalization

Data Model:
- Response envelope {success, data, message}
- Error payloads {message, details, errors}

Dependencies:
- aiohttp for async HTTP
- certifi for SSL
- logging for tracking

Author: Ledger Sync Development Team
"""

import ssl
import logging
from typing import Any, Dict, List, Optional

import aiohttp
import certifi

from .config import API_BASE_URL, REQUEST_TIMEOUT_SECONDS

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """
    Failed API call.

    Attributes:
        message (str): Human readable message
        status (Optional[int]): HTTP status, None when the request never got one
        details (Optional[str]): Extra detail from the error payload
        validation_errors (List[str]): Row-level validation failures
        payload (Optional[dict]): Raw error body
    """

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        details: Optional[str] = None,
        validation_errors: Optional[List[str]] = None,
        payload: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.status = status
        self.details = details
        self.validation_errors = validation_errors or []
        self.payload = payload

    @classmethod
    def from_payload(cls, status: int, payload: Any) -> "ApiError":
        """Build an error from a non-2xx response body."""
        body = payload if isinstance(payload, dict) else {}
        message = body.get("message") or f"Request failed with status {status}"
        details = body.get("details") or body.get("error") or body.get("errorCode")
        raw_errors = body.get("validationErrors") or body.get("errors") or []
        validation_errors = []
        if isinstance(raw_errors, list):
            for entry in raw_errors:
                if isinstance(entry, dict) and entry.get("error"):
                    validation_errors.append(str(entry["error"]))
                else:
                    validation_errors.append(str(entry))
        return cls(
            message,
            status=status,
            details=str(details) if details else None,
            validation_errors=validation_errors,
            payload=body or None
        )


def unwrap_envelope(payload: Any, default_message: str) -> Any:
    """
    Return the data of a {success, data, message} envelope.

    Raises:
        ApiError: When the envelope reports failure
    """
    if not isinstance(payload, dict) or not payload.get("success"):
        message = payload.get("message") if isinstance(payload, dict) else None
        raise ApiError(message or default_message, payload=payload if isinstance(payload, dict) else None)
    return payload.get("data")


class ApiClient:
    """
    REST client for the invoice backend.

    Attributes:
        token: Bearer token
        base_url: API root, e.g. http://host/api
        timeout: Total request timeout in seconds
    """

    def __init__(
        self,
        token: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: float = REQUEST_TIMEOUT_SECONDS
    ):
        self.token = token
        self.base_url = (base_url if base_url is not None else API_BASE_URL).rstrip('/')
        self.timeout = aiohttp.ClientTimeout(total=timeout)

    @property
    def headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    def _connector(self) -> aiohttp.TCPConnector:
        return aiohttp.TCPConnector(ssl=ssl.create_default_context(cafile=certifi.where()))

    async def get(self, path: str) -> Dict[str, Any]:
        """
        GET a JSON resource.

        Args:
            path: Path relative to the API root

        Returns:
            dict: Decoded JSON body

        Raises:
            ApiError: For non-2xx responses
            aiohttp.ClientError: For transport failures
        """
        url = self._url(path)
        logger.debug(f"GET {url}")
        async with aiohttp.ClientSession(timeout=self.timeout, connector=self._connector()) as session:
            async with session.get(url, headers=self.headers) as response:
                return await self._handle_response(response)

    async def post_file(
        self,
        path: str,
        filename: str,
        content: bytes,
        content_type: Optional[str] = None,
        field: str = "file"
    ) -> Dict[str, Any]:
        """
        POST a file as multipart form data.

        Args:
            path: Path relative to the API root
            filename: Name sent with the part
            content: File bytes
            content_type: MIME type of the part
            field: Form field name

        Returns:
            dict: Decoded JSON body
        """
        url = self._url(path)
        form = aiohttp.FormData()
        form.add_field(field, content, filename=filename, content_type=content_type or "application/octet-stream")
        logger.info(f"Uploading {filename} ({len(content)} bytes) to {url}")
        async with aiohttp.ClientSession(timeout=self.timeout, connector=self._connector()) as session:
            async with session.post(url, data=form, headers=self.headers) as response:
                return await self._handle_response(response)

    async def _handle_response(self, response: aiohttp.ClientResponse) -> Dict[str, Any]:
        try:
            payload = await response.json(content_type=None)
        except ValueError:
            payload = {"message": await response.text()}

        if response.status >= 400:
            logger.error(f"API returned status {response.status} for {response.url}")
            raise ApiError.from_payload(response.status, payload)
        return payload if isinstance(payload, dict) else {"success": True, "data": payload}
