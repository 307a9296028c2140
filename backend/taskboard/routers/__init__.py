"""API routers for Taskboard."""

from .board import router as board_router
from .reminders import router as reminders_router

__all__ = [
    "board_router",
    "reminders_router",
]
