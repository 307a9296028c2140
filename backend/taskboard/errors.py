"""Failure types for board loading, saving and push delivery.

None of these are fatal. Stores never raise them to their callers; they
travel inside results (``LoadResult.error``, ``SyncController.last_error``)
or through subscription error callbacks.
"""

from typing import Optional


class TaskboardError(Exception):
    """Base class for Taskboard failures."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause


class LoadFailure(TaskboardError):
    """Network or parse error while reading the board document."""


class SaveFailure(TaskboardError):
    """Network or validation error while writing the board document."""


class ValidationFailure(TaskboardError):
    """A board document with the wrong shape was rejected."""


class SubscriptionFailure(TaskboardError):
    """The push channel of a store broke."""
