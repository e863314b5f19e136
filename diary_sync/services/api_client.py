"""Async HTTP transport for the diary API.

Unwraps the ``{success, data, message}`` envelope and turns every failure
into an :class:`~diary_sync.core.errors.ApiError`.
"""
import logging
from typing import Any, Dict, Optional

import httpx

from diary_sync.core.config import API_BASE_URL, REQUEST_TIMEOUT_SECONDS
from diary_sync.core.errors import (
    ApiConnectionError,
    ApiLevelError,
    ParseError,
    error_for_status,
)

logger = logging.getLogger(__name__)


class ApiClient:
    def __init__(
        self,
        *,
        base_url: str = API_BASE_URL,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            headers={"Content-Type": "application/json", "Accept": "application/json"},
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def request(
        self,
        method: str,
        path: str,
        *,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, Any]] = None,
        json_body: Optional[Dict[str, Any]] = None,
        fallback_message: str = "Request failed",
        status_messages: Optional[Dict[int, str]] = None,
    ) -> Any:
        """Send one request and return the envelope's ``data``."""
        try:
            response = await self._client.request(
                method, path, headers=headers, params=params, json=json_body
            )
        except httpx.TimeoutException as e:
            logger.error(f"❌ {method} {path} timed out: {e}")
            raise ApiConnectionError("Request timed out. Please check your internet connection") from e
        except httpx.TransportError as e:
            logger.error(f"❌ {method} {path} transport failure: {e}")
            raise ApiConnectionError() from e

        logger.info(f"{method} {path} -> {response.status_code}")

        if not response.is_success:
            raise error_for_status(response.status_code, status_messages)

        try:
            payload = response.json()
        except ValueError as e:
            raise ParseError("Response body is not JSON") from e

        if not isinstance(payload, dict):
            raise ParseError("Response envelope is not an object")

        if payload.get("success") is not True:
            message = payload.get("message") or payload.get("error") or fallback_message
            logger.error(f"API returned success=false for {method} {path}: {message}")
            raise ApiLevelError(message)

        return payload.get("data")
