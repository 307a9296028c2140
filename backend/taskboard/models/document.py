"""Board document models.

The whole board is one aggregate, persisted and replaced as a single
value. Attribute names are snake_case; the wire form (what stores and
browsers exchange) is camelCase through aliases.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class Card(BaseModel):
    """A task unit belonging to exactly one board."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: int
    title: str = Field(min_length=1)
    description: Optional[str] = None
    due_date: Optional[str] = Field(default=None, alias="dueDate")
    assignee: Optional[str] = None
    background_color: Optional[str] = Field(default=None, alias="backgroundColor")
    reminder_email: Optional[str] = Field(default=None, alias="reminderEmail")
    reminder_date_time: Optional[str] = Field(default=None, alias="reminderDateTime")
    created_by: Optional[str] = Field(default=None, alias="createdBy")
    created_at: Optional[str] = Field(default=None, alias="createdAt")

    @property
    def has_reminder(self) -> bool:
        return bool(self.reminder_email and self.reminder_date_time)


class Board(BaseModel):
    """A named, ordered column of cards."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: int
    title: str
    color: str = "bg-gray-500"
    cards: list[Card] = Field(default_factory=list)


class BoardDocument(BaseModel):
    """Root aggregate: every board and card plus version metadata."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    boards: list[Board] = Field(default_factory=list)
    version: int = 1
    last_updated: Optional[str] = Field(default=None, alias="lastUpdated")
    last_updated_by: Optional[str] = Field(default=None, alias="lastUpdatedBy")

    def to_wire(self) -> dict[str, Any]:
        """Serialize to the camelCase JSON shape stores exchange."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    @classmethod
    def from_wire(cls, data: dict[str, Any]) -> "BoardDocument":
        """Parse the camelCase JSON shape."""
        return cls.model_validate(data)

    def find_board(self, board_id: int) -> Optional[Board]:
        for board in self.boards:
            if board.id == board_id:
                return board
        return None

    def card_ids(self) -> list[int]:
        return [card.id for board in self.boards for card in board.cards]

    def board_ids(self) -> list[int]:
        return [board.id for board in self.boards]


def validate_document(data: Any) -> bool:
    """Check the minimal shape every writer must respect."""
    if not isinstance(data, dict):
        return False

    if not isinstance(data.get("boards"), list):
        return False

    # Validate each board
    for board in data["boards"]:
        if not isinstance(board, dict):
            return False
        if not board.get("id") or not board.get("title") or not isinstance(board.get("cards"), list):
            return False

    return True


def document_stats(document: BoardDocument) -> dict[str, Any]:
    """Summary counters shown next to the board."""
    return {
        "version": document.version,
        "lastUpdated": document.last_updated,
        "lastUpdatedBy": document.last_updated_by,
        "totalBoards": len(document.boards),
        "totalCards": sum(len(board.cards) for board in document.boards),
    }
