"""Board store backed by a REST key-value service (Vercel KV / Upstash).

The document is kept as a JSON string under one key. The service has no
push channel.
"""

import json
import logging
from typing import Optional

from ...errors import LoadFailure, SaveFailure
from ...models.document import BoardDocument
from .http import HttpBoardStore

logger = logging.getLogger(__name__)


class KeyValueStore(HttpBoardStore):
    """Reads with ``GET /get/{key}``, writes with ``POST /set/{key}``."""

    kind = "keyvalue"

    def auth_headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.config.credential}"}

    async def _fetch(self) -> Optional[BoardDocument]:
        client = self._get_client()
        response = await client.get(f"/get/{self.config.key}")
        response.raise_for_status()
        payload = response.json()

        if "error" in payload:
            raise LoadFailure(f"key-value store error: {payload['error']}")

        raw = payload.get("result")
        if raw is None:
            return None
        # Values written by other clients may be stored as objects, not strings
        data = json.loads(raw) if isinstance(raw, str) else raw
        document = self.parse_document(data)
        if document is not None:
            logger.info(f"Key-value store returned version {document.version}")
        return document

    async def _store(self, document: BoardDocument) -> None:
        client = self._get_client()
        response = await client.post(
            f"/set/{self.config.key}",
            content=json.dumps(document.to_wire()),
        )
        response.raise_for_status()
        payload = response.json()
        if payload.get("result") != "OK":
            raise SaveFailure(f"key-value store refused write: {payload}")
