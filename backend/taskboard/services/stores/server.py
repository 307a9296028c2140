"""Board store that talks to this project's own board server."""

import logging
from typing import Optional

from ...errors import LoadFailure, SaveFailure
from ...models.document import BoardDocument
from .http import HttpBoardStore

logger = logging.getLogger(__name__)


class ServerStore(HttpBoardStore):
    """Reads and replaces the document through ``/api/board``."""

    kind = "server"

    async def _fetch(self) -> Optional[BoardDocument]:
        client = self._get_client()
        response = await client.get("/api/board")
        response.raise_for_status()
        payload = response.json()
        if not payload.get("success"):
            raise LoadFailure(f"board server error: {payload.get('message', 'unknown')}")
        return self.parse_document(payload.get("data"))

    async def _store(self, document: BoardDocument) -> None:
        client = self._get_client()
        response = await client.put("/api/board", json=document.to_wire())
        if response.status_code == 400:
            raise SaveFailure(f"board server rejected the document: {response.json().get('message')}")
        response.raise_for_status()
        payload = response.json()
        if not payload.get("success"):
            raise SaveFailure(f"board server error: {payload.get('message', 'unknown')}")
        logger.debug(f"Board server now at version {payload.get('data', {}).get('version')}")
