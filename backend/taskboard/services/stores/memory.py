"""Process-local board store.

Nothing survives a restart. Listeners registered in this process are
told about every save, including their own.
"""

import logging
from typing import Optional

from ...models.document import BoardDocument
from .base import BoardStore, ChangeCallback, ErrorCallback, Unsubscribe

logger = logging.getLogger(__name__)


class MemoryStore(BoardStore):
    """Keeps the board document in memory."""

    kind = "memory"
    supports_push = True

    def __init__(self, initial: Optional[BoardDocument] = None):
        super().__init__()
        self._data: Optional[dict] = initial.to_wire() if initial is not None else None
        self._listeners: list[ChangeCallback] = []

    async def _fetch(self) -> Optional[BoardDocument]:
        return self.parse_document(self._data)

    async def _store(self, document: BoardDocument) -> None:
        # Store a detached copy so later edits by callers never leak in
        self._data = document.to_wire()
        for listener in list(self._listeners):
            try:
                listener(BoardDocument.from_wire(self._data))
            except Exception as e:
                logger.error(f"Board listener failed: {e}")

    def subscribe(self, on_change: ChangeCallback, on_error: Optional[ErrorCallback] = None) -> Unsubscribe:
        self._listeners.append(on_change)

        def unsubscribe() -> None:
            if on_change in self._listeners:
                self._listeners.remove(on_change)

        return unsubscribe

    @property
    def listener_count(self) -> int:
        return len(self._listeners)
