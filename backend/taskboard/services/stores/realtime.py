"""Board store backed by a real-time tree database (Firebase RTDB REST API).

Reads and writes go to ``{url}/{path}.json``. Push delivery uses the
server-sent event stream the same URL serves when asked for
``text/event-stream``. Each ``put`` at the root carries the whole
document; any other change triggers a fresh read so listeners always get
a full document.
"""

import asyncio
import json
import logging
from typing import Any, Optional

import httpx

from ...errors import SubscriptionFailure
from ...models.document import BoardDocument
from .base import ChangeCallback, ErrorCallback, Unsubscribe
from .http import HttpBoardStore

logger = logging.getLogger(__name__)


class RealtimeStore(HttpBoardStore):
    """Firebase-style store with native push."""

    kind = "realtime"
    supports_push = True

    @property
    def node(self) -> str:
        return f"/{self.config.path.strip('/')}.json"

    def _params(self) -> dict[str, str]:
        # The REST API takes the database secret / ID token as a query parameter
        if self.config.credential:
            return {"auth": self.config.credential}
        return {}

    async def _fetch(self) -> Optional[BoardDocument]:
        client = self._get_client()
        response = await client.get(self.node, params=self._params())
        response.raise_for_status()
        document = self.parse_document(response.json())
        if document is not None:
            logger.info(f"Realtime database returned version {document.version} by {document.last_updated_by}")
        return document

    async def _store(self, document: BoardDocument) -> None:
        client = self._get_client()
        response = await client.put(self.node, params=self._params(), json=document.to_wire())
        response.raise_for_status()

    def subscribe(self, on_change: ChangeCallback, on_error: Optional[ErrorCallback] = None) -> Unsubscribe:
        task = asyncio.get_running_loop().create_task(self._listen(on_change, on_error))

        def unsubscribe() -> None:
            if not task.done():
                task.cancel()

        return unsubscribe

    async def _listen(self, on_change: ChangeCallback, on_error: Optional[ErrorCallback]) -> None:
        client = self._get_client()
        try:
            async with client.stream(
                "GET",
                self.node,
                params=self._params(),
                headers={"Accept": "text/event-stream"},
                timeout=httpx.Timeout(self.config.timeout_seconds, read=None),
            ) as response:
                response.raise_for_status()
                logger.info(f"Listening for board changes on {self.node}")
                event = None
                async for line in response.aiter_lines():
                    if line.startswith("event:"):
                        event = line[len("event:"):].strip()
                    elif line.startswith("data:"):
                        await self._handle_event(event, line[len("data:"):].strip(), on_change)
                    elif not line:
                        event = None
            raise SubscriptionFailure("push stream closed by the server")
        except asyncio.CancelledError:
            logger.info(f"Stopped listening on {self.node}")
            raise
        except Exception as e:
            failure = e if isinstance(e, SubscriptionFailure) else SubscriptionFailure(f"push stream failed: {e}", e)
            logger.error(f"Realtime subscription error: {failure.message}")
            if on_error is not None:
                on_error(failure)

    async def _handle_event(self, event: Optional[str], data: str, on_change: ChangeCallback) -> None:
        if event in (None, "keep-alive"):
            return
        if event in ("cancel", "auth_revoked"):
            raise SubscriptionFailure(f"push stream ended: {event}")
        if event not in ("put", "patch"):
            logger.debug(f"Ignoring stream event {event}")
            return

        payload: Any = json.loads(data)
        if event == "put" and payload.get("path") == "/":
            document = self.parse_document(payload.get("data"))
        else:
            # Partial change somewhere below the root: re-read the whole document
            document = await self._fetch()

        if document is None:
            return

        self._last_known = document
        logger.info(f"Change detected: version {document.version} by {document.last_updated_by}")
        try:
            on_change(document)
        except Exception as e:
            logger.error(f"Board listener failed: {e}")
