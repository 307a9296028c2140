"""Data models for Taskboard."""

from .database import Base, get_db, init_db, close_db
from .board import BoardRecord
from .reminder import Reminder
from .document import Board, BoardDocument, Card, document_stats, validate_document

__all__ = [
    "Base",
    "get_db",
    "init_db",
    "close_db",
    "BoardRecord",
    "Reminder",
    "Board",
    "BoardDocument",
    "Card",
    "document_stats",
    "validate_document",
]
