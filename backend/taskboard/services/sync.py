"""Synchronization controller for one client session.

Keeps a local board document in step with the active Board Store:

    CONNECTING -> READY <-> SAVING
    CONNECTING -> ERROR <-  SAVING
    ERROR -- reconnect() --> CONNECTING

Mutations are applied locally first and then saved as a whole document.
A failed save restores the document held before the mutation, unless a
push replaced it while the save was in flight. Push deliveries replace
the held document wholesale. Overlapping saves are not ordered:
whichever result is processed last wins.
"""

import asyncio
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Optional

from ..config import Config, get_config
from ..errors import LoadFailure, SaveFailure, SubscriptionFailure, TaskboardError
from ..models.document import Board, BoardDocument, Card
from ..utils.ids import new_id
from . import mutations
from .reminder import ReminderClient, ReminderRequest, parse_when
from .seed import default_document
from .stores import create_store
from .stores.base import BoardStore, Unsubscribe

logger = logging.getLogger(__name__)

Mutation = Callable[..., BoardDocument]

# Editing any of these reschedules the card's reminder
_REMINDER_FIELDS = {"reminderEmail", "reminder_email", "reminderDateTime", "reminder_date_time"}


class SyncState(str, Enum):
    CONNECTING = "connecting"
    READY = "ready"
    SAVING = "saving"
    ERROR = "error"


class SyncController:
    """Optimistic local state on top of a Board Store."""

    def __init__(self, store: BoardStore, user_name: str = "Usuario", reminders: Any = None):
        self.store = store
        self.user_name = user_name
        # Anything with ``async schedule(ReminderRequest)``
        self.reminders = reminders

        self.state = SyncState.CONNECTING
        self.document: Optional[BoardDocument] = None
        self.last_error: Optional[TaskboardError] = None
        self.save_failed = False
        self.last_saved_at: Optional[datetime] = None

        self._unsubscribe: Optional[Unsubscribe] = None
        self._pending_saves = 0
        self._remote_changes = 0
        self._closed = False

    async def __aenter__(self) -> "SyncController":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def closed(self) -> bool:
        return self._closed

    def _set_state(self, state: SyncState) -> None:
        if state != self.state:
            logger.debug(f"Sync state {self.state.value} -> {state.value}")
        self.state = state

    # Connection

    async def connect(self) -> None:
        """Load the document and start listening for pushes."""
        self._set_state(SyncState.CONNECTING)
        try:
            result = await self.store.load()
        except Exception as e:
            if self._closed:
                return
            logger.error(f"Store {self.store.kind} raised during load: {e}")
            if self.document is None:
                self.document = default_document()
            self.last_error = LoadFailure(f"load raised: {e}", e)
            self._set_state(SyncState.ERROR)
            return

        if self._closed:
            logger.debug("Discarding load result for a closed session")
            return

        self.document = result.document
        self.last_error = result.error
        self._set_state(SyncState.READY)
        logger.info(
            f"Connected to {self.store.kind} store at version {self.document.version}"
            + ("" if result.ok else " (fallback document)")
        )
        self._subscribe()

    async def reconnect(self) -> None:
        """Leave ERROR by connecting again."""
        if self.state != SyncState.ERROR:
            return
        self._release_subscription()
        await self.connect()

    def close(self) -> None:
        """Stop push delivery and ignore every result that arrives later."""
        self._closed = True
        self._release_subscription()

    async def aclose(self) -> None:
        """Close the session and the network clients it owns."""
        self.close()
        await self.store.aclose()
        if self.reminders is not None and hasattr(self.reminders, "aclose"):
            await self.reminders.aclose()

    def _subscribe(self) -> None:
        if self._unsubscribe is None and self.store.supports_push:
            self._unsubscribe = self.store.subscribe(self._on_remote_change, self._on_subscription_error)

    def _release_subscription(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _on_remote_change(self, document: BoardDocument) -> None:
        if self._closed or self.state not in (SyncState.READY, SyncState.SAVING):
            return
        logger.info(f"Remote change applied: version {document.version} by {document.last_updated_by}")
        self._remote_changes += 1
        self.document = document

    def _on_subscription_error(self, failure: SubscriptionFailure) -> None:
        if self._closed:
            return
        logger.warning(f"Push channel lost: {failure.message}")
        self.last_error = failure
        self._release_subscription()
        self._set_state(SyncState.ERROR)

    # Mutations

    def new_card(self, title: str, **fields: Any) -> Card:
        """Build a card with a fresh id, credited to this session's user."""
        return Card(
            id=new_id(),
            title=title,
            created_by=self.user_name,
            created_at=datetime.now(timezone.utc).isoformat(),
            **fields,
        )

    def new_board(self, title: str, color: str = "bg-gray-500") -> Board:
        return Board(id=new_id(), title=title, color=color)

    async def apply(self, mutation: Mutation, *args: Any) -> bool:
        """Apply a mutation optimistically and save the result.

        Returns True only when a save was attempted and confirmed. A
        mutation that changes nothing is not saved and returns False.
        """
        if self.document is None:
            raise RuntimeError("connect() must run before mutations")

        previous = self.document
        next_document = mutation(previous, *args)
        if next_document is previous:
            logger.debug(f"{mutation.__name__} changed nothing, not saving")
            return False

        stamped = next_document.model_copy(update={
            "version": previous.version + 1,
            "last_updated": datetime.now(timezone.utc).isoformat(),
            "last_updated_by": self.user_name,
        })

        self.document = next_document
        remote_changes = self._remote_changes
        self._pending_saves += 1
        if self.state != SyncState.ERROR:
            self._set_state(SyncState.SAVING)
        try:
            saved = await self.store.save(stamped)
        except Exception as e:
            self._pending_saves -= 1
            if self._closed:
                return False
            logger.error(f"Store {self.store.kind} raised during save: {e}")
            self._roll_back(previous, remote_changes)
            self.save_failed = True
            self.last_error = SaveFailure(f"save raised: {e}", e)
            self._set_state(SyncState.ERROR)
            return False

        self._pending_saves -= 1
        if self._closed:
            logger.debug("Discarding save result for a closed session")
            return saved

        if saved:
            self.document = stamped
            self.save_failed = False
            self.last_saved_at = datetime.now(timezone.utc)
        else:
            logger.warning(f"{mutation.__name__} could not be saved, rolling back to version {previous.version}")
            self._roll_back(previous, remote_changes)
            self.save_failed = True
            self.last_error = SaveFailure(f"{self.store.kind} store did not confirm the save")

        if self.state != SyncState.ERROR:
            self._set_state(SyncState.SAVING if self._pending_saves else SyncState.READY)
        return saved

    def _roll_back(self, previous: BoardDocument, remote_changes: int) -> None:
        # A push that landed during the save is newer than ``previous``
        if self._remote_changes != remote_changes:
            logger.info("Keeping the pushed document instead of rolling back")
            return
        self.document = previous

    async def add_card(self, board_id: int, card: Card) -> bool:
        saved = await self.apply(mutations.add_card, board_id, card)
        if saved and card.has_reminder and self.reminders is not None:
            board = self.document.find_board(board_id)
            await self._schedule_reminder(card, board.title if board else "")
        return saved

    async def delete_card(self, board_id: int, card_id: int) -> bool:
        return await self.apply(mutations.delete_card, board_id, card_id)

    async def move_card(self, card_id: int, from_board_id: int, to_board_id: int) -> bool:
        return await self.apply(mutations.move_card, card_id, from_board_id, to_board_id)

    async def edit_card(self, board_id: int, card_id: int, fields: dict[str, Any]) -> bool:
        saved = await self.apply(mutations.edit_card, board_id, card_id, fields)
        if saved and self.reminders is not None and _REMINDER_FIELDS & set(fields):
            board = self.document.find_board(board_id)
            card = next((c for c in board.cards if c.id == card_id), None) if board else None
            if card is not None and card.has_reminder:
                await self._schedule_reminder(card, board.title)
        return saved

    async def add_board(self, board: Board) -> bool:
        return await self.apply(mutations.add_board, board)

    async def delete_board(self, board_id: int) -> bool:
        return await self.apply(mutations.delete_board, board_id)

    async def _schedule_reminder(self, card: Card, board_title: str) -> None:
        try:
            request = ReminderRequest(
                title=card.title,
                recipient_email=card.reminder_email,
                scheduled_at=parse_when(card.reminder_date_time),
                board_title=board_title,
                card_id=card.id,
            )
            await self.reminders.schedule(request)
        except Exception as e:
            logger.error(f"Could not schedule reminder for card {card.id}: {e}")

    # Reloading

    async def refresh(self) -> bool:
        """Reload on demand. Failures leave the held document alone."""
        if self.state != SyncState.READY:
            return False
        try:
            result = await self.store.load()
        except Exception as e:
            logger.warning(f"Refresh failed: {e}")
            return False
        if self._closed or not result.ok:
            return False
        self.document = result.document
        return True

    async def poll_for_changes(self) -> bool:
        """Reload only when the store holds a newer version."""
        if self.state != SyncState.READY or self.document is None:
            return False
        try:
            result = await self.store.load()
        except Exception as e:
            logger.warning(f"Polling failed: {e}")
            return False
        if self._closed or not result.ok:
            return False
        if result.document.version <= self.document.version:
            return False
        logger.info(f"Newer board found: version {result.document.version}")
        self.document = result.document
        return True

    async def run_polling(self, interval: float) -> None:
        """Poll until closed or cancelled; for stores without push."""
        while not self._closed:
            await asyncio.sleep(interval)
            await self.poll_for_changes()


def create_controller(config: Optional[Config] = None) -> SyncController:
    """Wire a controller to the store and reminder endpoint from configuration."""
    config = config or get_config()
    store = create_store(config.store)
    reminders = None
    if config.reminders.endpoint_url:
        reminders = ReminderClient(config.reminders.endpoint_url, timeout=config.store.timeout_seconds)
    return SyncController(store, user_name=config.sync.user_name, reminders=reminders)
