"""Board Store contract shared by every backend."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Optional

from ...errors import LoadFailure, SubscriptionFailure
from ...models.document import BoardDocument, validate_document
from ..seed import default_document

logger = logging.getLogger(__name__)

ChangeCallback = Callable[[BoardDocument], None]
ErrorCallback = Callable[[SubscriptionFailure], None]
Unsubscribe = Callable[[], None]


@dataclass
class LoadResult:
    """Outcome of a load: always carries a document, even on failure."""
    document: BoardDocument
    error: Optional[LoadFailure] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _noop() -> None:
    return None


class BoardStore(ABC):
    """One persistence backend behind load / save / subscribe.

    ``load`` and ``save`` never raise. A failed load returns the last
    document this store saw (or the seed) together with the error; a failed
    save returns False.
    """

    kind: str = "abstract"
    supports_push: bool = False

    def __init__(self):
        self._last_known: Optional[BoardDocument] = None

    async def load(self) -> LoadResult:
        try:
            document = await self._fetch()
        except Exception as e:
            error = e if isinstance(e, LoadFailure) else LoadFailure(f"{self.kind} load failed: {e}", e)
            logger.warning(f"{self.kind} store load failed, using fallback document: {error.message}")
            return LoadResult(document=self.fallback_document(), error=error)

        if document is None:
            logger.info(f"{self.kind} store has no board yet, writing the default document")
            document = default_document()
            await self.save(document)

        self._last_known = document
        return LoadResult(document=document)

    async def save(self, document: BoardDocument) -> bool:
        try:
            await self._store(document)
        except Exception as e:
            logger.error(f"{self.kind} store save failed (version {document.version}): {e}")
            return False

        self._last_known = document
        logger.debug(f"{self.kind} store saved version {document.version}")
        return True

    def subscribe(self, on_change: ChangeCallback, on_error: Optional[ErrorCallback] = None) -> Unsubscribe:
        """Register for push delivery. Stores without push never call back."""
        return _noop

    def fallback_document(self) -> BoardDocument:
        if self._last_known is not None:
            return self._last_known
        return default_document()

    async def aclose(self) -> None:
        """Release network resources held by the store."""
        return None

    @abstractmethod
    async def _fetch(self) -> Optional[BoardDocument]:
        """Read the stored document; None means the backend holds no data."""

    @abstractmethod
    async def _store(self, document: BoardDocument) -> None:
        """Write the document, raising on any failure."""

    @staticmethod
    def parse_document(data: Any) -> Optional[BoardDocument]:
        """Turn a decoded payload into a document; None for an empty payload."""
        if data is None:
            return None
        if isinstance(data, dict) and "boards" not in data:
            return None
        if not validate_document(data):
            raise LoadFailure("stored value is not a board document")
        return BoardDocument.from_wire(data)
