# ABOUTME: Async HTTP client for the NLM RxNav REST API.
# ABOUTME: Fetches raw JSON from four read-only endpoints, degrading failures to None.

import logging
from typing import Any
from urllib.parse import quote

import httpx

from src.config import config
from src.services.http import HTTPClientManager

logger = logging.getLogger(__name__)


class RxNormError(Exception):
    """Raised when an RxNav request fails."""

    pass


class RxNormClient:
    """Async HTTP client for RxNav drug terminology endpoints."""

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        http_manager: HTTPClientManager | None = None,
    ):
        self.base_url = (base_url or config.RXNORM_BASE_URL).rstrip("/")
        self.timeout = timeout or config.RXNORM_TIMEOUT
        self._http_manager = http_manager

    def build_url(self, path: str, rxcui: str | None = None) -> str:
        """Build full API URL for an endpoint path, escaping any {rxcui} segment."""
        if rxcui is not None:
            path = path.format(rxcui=quote(rxcui, safe=""))
        return f"{self.base_url}/{path.lstrip('/')}"

    async def _fetch(self, url: str, params: dict[str, Any] | None = None) -> Any:
        """Execute HTTP GET request and return JSON response."""
        if self._http_manager is not None:
            client = await self._http_manager.get_client()
            response = await client.get(url, params=params, timeout=self.timeout)
            response.raise_for_status()
            return response.json()

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.get(url, params=params)
            response.raise_for_status()
            return response.json()

    async def _request(
        self,
        operation: str,
        path: str,
        params: dict[str, Any] | None = None,
        rxcui: str | None = None,
    ) -> Any:
        """
        Fetch an endpoint, normalizing every failure into RxNormError.

        Raises:
            RxNormError: On timeout, non-2xx status, undecodable body or transport error.
        """
        try:
            url = self.build_url(path, rxcui)
            return await self._fetch(url, params)
        except httpx.TimeoutException as e:
            raise RxNormError(f"Request timeout for {operation}: {e}") from e
        except httpx.HTTPStatusError as e:
            raise RxNormError(
                f"HTTP error {e.response.status_code} for {operation}"
            ) from e
        except UnicodeError as e:
            raise RxNormError(f"Invalid request for {operation}: {e}") from e
        except ValueError as e:
            raise RxNormError(f"Invalid JSON for {operation}: {e}") from e
        except httpx.HTTPError as e:
            raise RxNormError(f"Request failed for {operation}: {e}") from e

    async def _get(
        self,
        operation: str,
        subject: str,
        path: str,
        params: dict[str, Any] | None = None,
        rxcui: str | None = None,
    ) -> dict[str, Any] | None:
        """Fetch an endpoint, logging failures and returning None instead of raising."""
        try:
            return await self._request(operation, path, params, rxcui)
        except RxNormError as e:
            logger.error(f"RxNav {operation} failed for '{subject}': {e}")
            return None

    async def fetch_drugs_by_name(self, name: str) -> dict[str, Any] | None:
        """GET /drugs.json?name={name}."""
        return await self._get(
            "fetch_drugs_by_name", name, "drugs.json", params={"name": name}
        )

    async def fetch_history_status(self, rxcui: str) -> dict[str, Any] | None:
        """GET /rxcui/{rxcui}/historystatus.json."""
        return await self._get(
            "fetch_history_status", rxcui, "rxcui/{rxcui}/historystatus.json", rxcui=rxcui
        )

    async def fetch_status(self, rxcui: str) -> dict[str, Any] | None:
        """GET /rxcui/{rxcui}/status.json."""
        return await self._get(
            "fetch_status", rxcui, "rxcui/{rxcui}/status.json", rxcui=rxcui
        )

    async def fetch_properties(self, rxcui: str) -> dict[str, Any] | None:
        """GET /rxcui/{rxcui}/properties.json."""
        return await self._get(
            "fetch_properties", rxcui, "rxcui/{rxcui}/properties.json", rxcui=rxcui
        )
