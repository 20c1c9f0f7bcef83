"""Shared httpx client handling for the HTTP lookups."""

import logging
from typing import Optional

import httpx

logger = logging.getLogger(__name__)

class AsyncHttpResource:
    """Owns an httpx.AsyncClient that is created on first use.

    The client is rebuilt after aclose(), so one lookup instance can serve
    several event loops in sequence (one per CLI command).
    """

    def __init__(self, base_url: str, timeout_s: float, client: Optional[httpx.AsyncClient] = None):
        self.base_url = base_url
        self.timeout_s = timeout_s
        self._client = client
        self._owns_client = client is None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout_s)
        return self._client

    async def aclose(self) -> None:
        """Closes the underlying HTTP client if this resource created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
            logger.debug(f"Closed HTTP client for {self.base_url}")
