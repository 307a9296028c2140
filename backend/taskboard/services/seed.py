"""Default board document used when a store has no data yet."""

from datetime import datetime, timezone

from ..models.document import BoardDocument

SEED_AUTHOR = "System"

# Default boards if no document exists
DEFAULT_BOARDS = [
    {"id": 1, "title": "To Do", "color": "bg-blue-500"},
    {"id": 2, "title": "In Progress", "color": "bg-yellow-500"},
    {"id": 3, "title": "Done", "color": "bg-green-500"},
]


def default_document() -> BoardDocument:
    """Build a fresh copy of the seed document."""
    now = datetime.now(timezone.utc).isoformat()
    boards = [dict(board, cards=[]) for board in DEFAULT_BOARDS]
    boards[0]["cards"].append({
        "id": 1,
        "title": "Welcome to the shared board",
        "description": "Changes made here are saved for everyone using this board",
        "backgroundColor": "#e3f2fd",
        "createdBy": SEED_AUTHOR,
        "createdAt": now,
    })
    return BoardDocument.from_wire({
        "boards": boards,
        "version": 1,
        "lastUpdated": now,
        "lastUpdatedBy": SEED_AUTHOR,
    })
