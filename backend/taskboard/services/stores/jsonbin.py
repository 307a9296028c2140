"""Board store backed by a hosted JSON bin (JSONBin.io v3 API)."""

import logging
from typing import Optional

from ...models.document import BoardDocument
from .http import HttpBoardStore

logger = logging.getLogger(__name__)

JSONBIN_API_URL = "https://api.jsonbin.io/v3"


class JsonBinStore(HttpBoardStore):
    """Reads ``GET /b/{bin}/latest`` (payload under ``record``), writes ``PUT /b/{bin}``."""

    kind = "jsonbin"

    @property
    def base_url(self) -> str:
        return (self.config.endpoint_url or JSONBIN_API_URL).rstrip("/")

    def auth_headers(self) -> dict[str, str]:
        return {"X-Master-Key": self.config.credential}

    async def _fetch(self) -> Optional[BoardDocument]:
        client = self._get_client()
        response = await client.get(f"/b/{self.config.bin_id}/latest")
        response.raise_for_status()
        document = self.parse_document(response.json().get("record"))
        if document is not None:
            logger.info(f"JSON bin returned version {document.version} by {document.last_updated_by}")
        return document

    async def _store(self, document: BoardDocument) -> None:
        client = self._get_client()
        response = await client.put(
            f"/b/{self.config.bin_id}",
            json=document.to_wire(),
        )
        response.raise_for_status()
