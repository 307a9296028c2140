"""Services for Taskboard."""

from .board import BoardService
from .broadcast import BoardBroadcaster, get_broadcaster
from .notification import NotificationService
from .reminder import ReminderClient, ReminderRequest, ReminderService
from .stores import BoardStore, LoadResult, create_store
from .sync import SyncController, SyncState

__all__ = [
    "BoardService",
    "BoardBroadcaster",
    "get_broadcaster",
    "NotificationService",
    "ReminderClient",
    "ReminderRequest",
    "ReminderService",
    "BoardStore",
    "LoadResult",
    "create_store",
    "SyncController",
    "SyncState",
]
