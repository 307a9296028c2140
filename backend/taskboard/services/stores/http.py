"""Shared plumbing for stores reached over HTTP."""

from typing import Optional

import httpx

from ...config import StoreConfig
from .base import BoardStore


class HttpBoardStore(BoardStore):
    """Board store that owns a lazily created ``httpx.AsyncClient``."""

    def __init__(self, config: StoreConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        super().__init__()
        self.config = config
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def base_url(self) -> str:
        return self.config.endpoint_url.rstrip("/")

    def auth_headers(self) -> dict[str, str]:
        return {}

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=self.auth_headers(),
                timeout=self.config.timeout_seconds,
                transport=self._transport,
                # Firebase streaming answers with 307 to the serving host
                follow_redirects=True,
            )
        return self._client

    async def aclose(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
