"""Board service: the board server's stored document."""

import logging
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..errors import ValidationFailure
from ..models.board import BoardRecord
from ..models.document import BoardDocument, validate_document
from .seed import default_document

logger = logging.getLogger(__name__)

DEFAULT_BOARD_KEY = "default"
DEFAULT_WRITER = "Usuario"


class BoardService:
    """Reads and replaces the single stored board document."""

    def __init__(self, db: AsyncSession, key: str = DEFAULT_BOARD_KEY):
        self.db = db
        self.key = key

    async def _get_record(self) -> Optional[BoardRecord]:
        result = await self.db.execute(
            select(BoardRecord).where(BoardRecord.key == self.key)
        )
        return result.scalar_one_or_none()

    async def get_document(self) -> BoardDocument:
        """Return the stored document, storing the seed if there is none."""
        record = await self._get_record()
        if record is None:
            document = default_document()
            record = BoardRecord(
                key=self.key,
                payload=document.to_wire(),
                version=document.version,
                updated_by=document.last_updated_by or "",
            )
            self.db.add(record)
            await self.db.flush()
            logger.info("No board stored yet, default document created")
            return document

        return BoardDocument.from_wire(record.payload)

    async def replace_document(self, data: Any) -> BoardDocument:
        """Replace the stored document with ``data``.

        The server owns the version: it becomes the stored version plus one,
        whatever the body says. Raises ``ValidationFailure`` for a body that
        is not a board document; nothing is written in that case.
        """
        if not validate_document(data):
            raise ValidationFailure("body must be an object with a 'boards' array")

        current = await self.get_document()
        now = datetime.now(timezone.utc).isoformat()
        try:
            document = BoardDocument.from_wire({
                **data,
                "version": current.version + 1,
                "lastUpdated": now,
                "lastUpdatedBy": data.get("lastUpdatedBy") or DEFAULT_WRITER,
            })
        except ValidationError as e:
            raise ValidationFailure(f"invalid board document: {e.error_count()} errors", e)

        record = await self._get_record()
        record.payload = document.to_wire()
        record.version = document.version
        record.updated_by = document.last_updated_by or ""
        await self.db.flush()

        logger.info(f"Board updated to version {document.version} by {document.last_updated_by}")
        return document
