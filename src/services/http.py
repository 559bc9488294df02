# ABOUTME: Pooled HTTP client shared by RxNav requests.
# ABOUTME: Owns one httpx.AsyncClient per process, rebuilt lazily after close.

import asyncio
import logging
from typing import ClassVar

import httpx

from src.config import config

logger = logging.getLogger(__name__)

DEFAULT_HEADERS = {"Accept": "application/json"}


class HTTPClientManager:
    """Lazily builds and reuses a pooled httpx.AsyncClient."""

    _shared: ClassVar["HTTPClientManager | None"] = None

    def __init__(
        self,
        timeout: float | None = None,
        max_connections: int | None = None,
        max_keepalive_connections: int | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.timeout = timeout or config.RXNORM_TIMEOUT
        self.limits = httpx.Limits(
            max_connections=max_connections or config.HTTP_MAX_CONNECTIONS,
            max_keepalive_connections=(
                max_keepalive_connections or config.HTTP_MAX_KEEPALIVE
            ),
        )
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._client_lock = asyncio.Lock()

    @classmethod
    def get_instance_sync(cls) -> "HTTPClientManager":
        """Return the process-wide manager, creating it on first use."""
        if cls._shared is None:
            cls._shared = cls()
        return cls._shared

    @classmethod
    def reset(cls) -> None:
        """Forget the process-wide manager (for testing)."""
        cls._shared = None

    @property
    def is_open(self) -> bool:
        return self._client is not None and not self._client.is_closed

    def _build_client(self) -> httpx.AsyncClient:
        # HTTP/2 needs h2, and injected transports (tests) speak HTTP/1.1 only
        http2 = False
        if self._transport is None:
            try:
                import h2  # noqa: F401
                http2 = True
            except ImportError:
                pass

        logger.debug(
            f"Creating RxNav client pool: max_connections={self.limits.max_connections}, "
            f"http2={http2}"
        )
        return httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout),
            limits=self.limits,
            headers=DEFAULT_HEADERS,
            http2=http2,
            transport=self._transport,
        )

    async def get_client(self) -> httpx.AsyncClient:
        """Return the pooled client, building a new one if none is open."""
        if not self.is_open:
            async with self._client_lock:
                if not self.is_open:
                    self._client = self._build_client()
        return self._client

    async def close(self) -> None:
        """Close the pooled client; the next get_client() builds a fresh one."""
        if self.is_open:
            logger.debug("Closing RxNav client pool")
            await self._client.aclose()
        self._client = None
