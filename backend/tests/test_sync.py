"""
Tests for SyncController.

Covers:
    - connect         : READY with stored document, seed on failure, ERROR on contract breach
    - apply           : optimistic update, version stamping, rollback, no-op mutations
    - overlapping saves: results processed in arrival order, last one wins,
                        a push received during a failed save is kept
    - push            : remote changes replace the held document, close stops delivery
    - reconnect / refresh / poll_for_changes
    - reminder hand-off after a saved card or a reminder edit
"""

import asyncio
import warnings
from pathlib import Path
from typing import Optional

import pytest

from taskboard.config import Config, StoreConfig, SyncConfig, ReminderConfig
from taskboard.errors import LoadFailure, SaveFailure, SubscriptionFailure
from taskboard.models.document import Board, BoardDocument, Card
from taskboard.services.reminder import ReminderClient
from taskboard.services.stores import MemoryStore
from taskboard.services.stores.base import BoardStore
from taskboard.services import sync as sync_module
from taskboard.services.sync import SyncController, SyncState, create_controller


class UnreachableStore(MemoryStore):
    """Every read and write fails the way a dropped connection does."""

    async def _fetch(self) -> Optional[BoardDocument]:
        raise ConnectionError("network unreachable")

    async def _store(self, document: BoardDocument) -> None:
        raise ConnectionError("network unreachable")


class RefusingStore(MemoryStore):
    """Loads fine, refuses every save."""

    async def _store(self, document: BoardDocument) -> None:
        raise ConnectionError("write refused")


class GatedStore(MemoryStore):
    """Holds each save until the test releases it."""

    supports_push = False

    def __init__(self, initial=None):
        super().__init__(initial)
        self.pending: list[tuple[BoardDocument, asyncio.Event]] = []

    async def save(self, document: BoardDocument) -> bool:
        gate = asyncio.Event()
        self.pending.append((document, gate))
        await gate.wait()
        return await super().save(document)


class GatedRefusingStore(GatedStore):
    """Holds each save, then refuses it."""

    async def _store(self, document: BoardDocument) -> None:
        raise ConnectionError("write refused")


class PollOnlyStore(MemoryStore):
    supports_push = False


class ContractBreakingStore(MemoryStore):
    """Raises out of load/save instead of reporting failure."""

    async def load(self):
        raise RuntimeError("load exploded")

    async def save(self, document):
        raise RuntimeError("save exploded")


class ManualPushStore(MemoryStore):
    """Lets the test fire subscription callbacks by hand."""

    def __init__(self, initial=None):
        super().__init__(initial)
        self.subscriptions = 0
        self.on_error = None

    def subscribe(self, on_change, on_error=None):
        self.subscriptions += 1
        self.on_error = on_error
        return super().subscribe(on_change, on_error)


class FakeReminders:
    def __init__(self):
        self.requests = []

    async def schedule(self, request):
        self.requests.append(request)
        return True


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Connecting
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class TestConnect:

    async def test_starts_connecting(self, todo_document):
        controller = SyncController(MemoryStore(todo_document))
        assert controller.state == SyncState.CONNECTING
        assert controller.document is None

    async def test_ready_with_stored_document(self, todo_document):
        controller = SyncController(MemoryStore(todo_document))
        await controller.connect()
        assert controller.state == SyncState.READY
        assert controller.document == todo_document
        assert controller.last_error is None

    async def test_empty_store_gets_seed(self):
        store = MemoryStore()
        controller = SyncController(store)
        await controller.connect()
        assert controller.state == SyncState.READY
        assert [b.title for b in controller.document.boards] == ["To Do", "In Progress", "Done"]
        # Seed was written back
        stored = await store.load()
        assert stored.document.version == 1

    async def test_load_failure_falls_back_to_seed(self):
        controller = SyncController(UnreachableStore())
        await controller.connect()
        assert controller.state == SyncState.READY
        assert controller.document.version == 1
        assert [(b.id, b.title, b.color) for b in controller.document.boards] == [
            (1, "To Do", "bg-blue-500"),
            (2, "In Progress", "bg-yellow-500"),
            (3, "Done", "bg-green-500"),
        ]
        assert isinstance(controller.last_error, LoadFailure)

    async def test_raising_store_enters_error(self):
        controller = SyncController(ContractBreakingStore())
        await controller.connect()
        assert controller.state == SyncState.ERROR
        assert controller.document is not None
        assert isinstance(controller.last_error, LoadFailure)

    async def test_context_manager_connects_and_closes(self, todo_document):
        store = MemoryStore(todo_document)
        async with SyncController(store) as controller:
            assert controller.state == SyncState.READY
            assert store.listener_count == 1
        assert controller.closed
        assert store.listener_count == 0

    async def test_mutation_before_connect_rejected(self):
        controller = SyncController(MemoryStore())
        with pytest.raises(RuntimeError):
            await controller.delete_board(1)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Applying mutations
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class TestApply:

    async def test_add_card_end_to_end(self, todo_document):
        store = MemoryStore(todo_document)
        controller = SyncController(store, user_name="Ana")
        await controller.connect()

        saved = await controller.add_card(1, Card(id=101, title="Write tests"))

        assert saved is True
        assert controller.state == SyncState.READY
        assert controller.document.version == 2
        assert controller.document.last_updated_by == "Ana"
        assert [c.title for c in controller.document.boards[0].cards] == ["Write tests"]

        reread = await store.load()
        assert reread.document.version == 2
        assert reread.document.boards[0].cards[0].id == 101

    async def test_failed_save_rolls_back(self, todo_document):
        controller = SyncController(RefusingStore(todo_document))
        await controller.connect()

        saved = await controller.add_card(1, Card(id=101, title="Write tests"))

        assert saved is False
        assert controller.document == todo_document
        assert controller.save_failed is True
        assert isinstance(controller.last_error, SaveFailure)
        assert controller.state == SyncState.READY

    async def test_success_clears_save_failed(self, todo_document):
        store = RefusingStore(todo_document)
        controller = SyncController(store)
        await controller.connect()
        await controller.add_card(1, Card(id=101, title="First"))
        assert controller.save_failed

        controller.store = MemoryStore(todo_document)
        assert await controller.add_card(1, Card(id=102, title="Second"))
        assert controller.save_failed is False
        assert controller.last_saved_at is not None

    async def test_noop_mutation_not_saved(self, todo_document):
        store = GatedStore(todo_document)
        controller = SyncController(store)
        await controller.connect()

        assert await controller.move_card(999, 1, 1) is False
        assert await controller.edit_card(1, 999, {"title": "x"}) is False
        assert store.pending == []
        assert controller.document == todo_document

    async def test_optimistic_document_visible_while_saving(self, todo_document):
        store = GatedStore(todo_document)
        controller = SyncController(store)
        await controller.connect()

        task = asyncio.create_task(controller.add_card(1, Card(id=5, title="Pending")))
        await asyncio.sleep(0)

        assert controller.state == SyncState.SAVING
        assert controller.document.card_ids() == [5]

        store.pending[0][1].set()
        assert await task is True
        assert controller.state == SyncState.READY

    async def test_raising_save_rolls_back_and_errors(self, todo_document):
        controller = SyncController(ContractBreakingStore(todo_document))
        controller.document = todo_document
        controller.state = SyncState.READY

        assert await controller.add_board(Board(id=2, title="Later")) is False
        assert controller.document == todo_document
        assert controller.state == SyncState.ERROR

    async def test_every_operation_saves(self, three_board_document):
        store = MemoryStore(three_board_document)
        controller = SyncController(store, user_name="Maria")
        await controller.connect()

        assert await controller.move_card(10, 1, 3)
        assert await controller.edit_card(3, 10, {"assignee": "Pedro"})
        assert await controller.delete_card(1, 11)
        assert await controller.add_board(Board(id=4, title="Blocked"))
        assert await controller.delete_board(2)

        document = (await store.load()).document
        assert document.version == three_board_document.version + 5
        assert document.board_ids() == [1, 3, 4]
        assert document.find_board(3).cards[0].assignee == "Pedro"


class TestOverlappingSaves:

    async def test_last_processed_result_wins(self, todo_document):
        store = GatedStore(todo_document)
        controller = SyncController(store)
        await controller.connect()

        first = asyncio.create_task(controller.add_card(1, Card(id=100, title="A")))
        await asyncio.sleep(0)
        second = asyncio.create_task(controller.add_card(1, Card(id=101, title="B")))
        await asyncio.sleep(0)
        assert len(store.pending) == 2
        first_document, first_gate = store.pending[0]
        second_document, second_gate = store.pending[1]

        # Second save completes first
        second_gate.set()
        await second
        assert controller.document == second_document
        assert controller.state == SyncState.SAVING

        first_gate.set()
        await first
        assert controller.document == first_document
        assert controller.document.card_ids() == [100]
        assert controller.state == SyncState.READY

    async def test_failed_save_keeps_push_received_meanwhile(self, todo_document, three_board_document):
        store = GatedRefusingStore(todo_document)
        controller = SyncController(store)
        await controller.connect()

        task = asyncio.create_task(controller.add_card(1, Card(id=100, title="A")))
        await asyncio.sleep(0)
        assert controller.state == SyncState.SAVING

        controller._on_remote_change(three_board_document)
        store.pending[0][1].set()

        assert await task is False
        assert controller.document == three_board_document
        assert controller.save_failed is True
        assert controller.state == SyncState.READY

    async def test_failed_save_without_push_still_rolls_back(self, todo_document):
        store = GatedRefusingStore(todo_document)
        controller = SyncController(store)
        await controller.connect()

        task = asyncio.create_task(controller.add_card(1, Card(id=100, title="A")))
        await asyncio.sleep(0)
        store.pending[0][1].set()

        assert await task is False
        assert controller.document == todo_document

    async def test_result_after_close_is_ignored(self, todo_document):
        store = GatedStore(todo_document)
        controller = SyncController(store)
        await controller.connect()

        task = asyncio.create_task(controller.add_card(1, Card(id=100, title="A")))
        await asyncio.sleep(0)
        optimistic = controller.document

        controller.close()
        store.pending[0][1].set()
        await task

        assert controller.document is optimistic
        assert controller.last_saved_at is None


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Push and reconnect
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class TestPush:

    async def test_remote_change_replaces_document(self, todo_document):
        store = MemoryStore(todo_document)
        ana = SyncController(store, user_name="Ana")
        carlos = SyncController(store, user_name="Carlos")
        await ana.connect()
        await carlos.connect()

        await ana.add_card(1, Card(id=7, title="From Ana"))

        assert carlos.document.version == 2
        assert carlos.document.last_updated_by == "Ana"
        assert carlos.document.card_ids() == [7]

    async def test_closed_session_stops_receiving(self, todo_document):
        store = MemoryStore(todo_document)
        ana = SyncController(store)
        carlos = SyncController(store)
        await ana.connect()
        await carlos.connect()
        held = carlos.document

        carlos.close()
        await ana.add_card(1, Card(id=7, title="From Ana"))

        assert carlos.document is held
        assert store.listener_count == 1

    async def test_subscription_error_then_reconnect(self, todo_document):
        store = ManualPushStore(todo_document)
        controller = SyncController(store)
        await controller.connect()
        assert store.subscriptions == 1

        store.on_error(SubscriptionFailure("stream dropped"))
        assert controller.state == SyncState.ERROR
        assert isinstance(controller.last_error, SubscriptionFailure)
        assert store.listener_count == 0

        await controller.reconnect()
        assert controller.state == SyncState.READY
        assert store.subscriptions == 2
        assert store.listener_count == 1

    async def test_reconnect_only_from_error(self, todo_document):
        store = ManualPushStore(todo_document)
        controller = SyncController(store)
        await controller.connect()
        await controller.reconnect()
        assert store.subscriptions == 1

    async def test_push_ignored_in_error(self, todo_document, three_board_document):
        store = ManualPushStore(todo_document)
        controller = SyncController(store)
        await controller.connect()
        controller.state = SyncState.ERROR
        controller._on_remote_change(three_board_document)
        assert controller.document == todo_document


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Refresh and polling
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class TestReload:

    async def test_poll_picks_up_newer_version(self, todo_document):
        store = PollOnlyStore(todo_document)
        writer = SyncController(store, user_name="Ana")
        reader = SyncController(store, user_name="Carlos")
        await writer.connect()
        await reader.connect()

        await writer.add_board(Board(id=2, title="Review"))
        assert reader.document.version == 1

        assert await reader.poll_for_changes() is True
        assert reader.document.version == 2
        assert await reader.poll_for_changes() is False

    async def test_refresh_replaces_document(self, todo_document, three_board_document):
        store = PollOnlyStore(todo_document)
        controller = SyncController(store)
        await controller.connect()

        await store.save(three_board_document)
        assert await controller.refresh() is True
        assert controller.document == three_board_document

    async def test_failed_refresh_keeps_document(self, todo_document):
        store = PollOnlyStore(todo_document)
        controller = SyncController(store)
        await controller.connect()

        controller.store = UnreachableStore()
        assert await controller.refresh() is False
        assert controller.document == todo_document
        assert controller.state == SyncState.READY

    async def test_run_polling_stops_when_closed(self, todo_document):
        controller = SyncController(PollOnlyStore(todo_document))
        await controller.connect()
        controller.close()
        await asyncio.wait_for(controller.run_polling(0.01), timeout=1)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Reminders
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class TestReminderHandoff:

    async def test_card_with_reminder_is_scheduled(self, todo_document):
        reminders = FakeReminders()
        controller = SyncController(MemoryStore(todo_document), reminders=reminders)
        await controller.connect()

        card = Card(
            id=55,
            title="Pay invoices",
            reminder_email="ana@example.com",
            reminder_date_time="2030-01-15T09:00:00Z",
        )
        assert await controller.add_card(1, card)

        assert len(reminders.requests) == 1
        request = reminders.requests[0]
        assert request.title == "Pay invoices"
        assert request.recipient_email == "ana@example.com"
        assert request.board_title == "To Do"
        assert request.card_id == 55
        assert request.scheduled_at.year == 2030

    async def test_failed_save_schedules_nothing(self, todo_document):
        reminders = FakeReminders()
        controller = SyncController(RefusingStore(todo_document), reminders=reminders)
        await controller.connect()

        card = Card(id=55, title="Pay", reminder_email="a@example.com", reminder_date_time="2030-01-15T09:00:00Z")
        await controller.add_card(1, card)
        assert reminders.requests == []

    async def test_edit_adding_reminder_is_scheduled(self, todo_document):
        reminders = FakeReminders()
        controller = SyncController(MemoryStore(todo_document), reminders=reminders)
        await controller.connect()
        assert await controller.add_card(1, Card(id=5, title="Renew domain"))
        assert reminders.requests == []

        assert await controller.edit_card(1, 5, {
            "reminderEmail": "a@example.com",
            "reminderDateTime": "2030-01-01T09:00:00Z",
        })

        assert len(reminders.requests) == 1
        request = reminders.requests[0]
        assert request.card_id == 5
        assert request.board_title == "To Do"
        assert request.recipient_email == "a@example.com"
        assert request.scheduled_at.year == 2030

    async def test_edit_rescheduling_reminder(self, todo_document):
        reminders = FakeReminders()
        controller = SyncController(MemoryStore(todo_document), reminders=reminders)
        await controller.connect()
        card = Card(id=5, title="Pay", reminder_email="a@example.com", reminder_date_time="2030-01-15T09:00:00Z")
        await controller.add_card(1, card)

        assert await controller.edit_card(1, 5, {"reminder_date_time": "2030-02-01T09:00:00Z"})

        assert len(reminders.requests) == 2
        assert reminders.requests[1].scheduled_at.month == 2

    async def test_edit_without_reminder_fields_schedules_nothing(self, todo_document):
        reminders = FakeReminders()
        controller = SyncController(MemoryStore(todo_document), reminders=reminders)
        await controller.connect()
        card = Card(id=5, title="Pay", reminder_email="a@example.com", reminder_date_time="2030-01-15T09:00:00Z")
        await controller.add_card(1, card)

        assert await controller.edit_card(1, 5, {"title": "Pay invoices"})
        assert len(reminders.requests) == 1

    async def test_bad_reminder_time_does_not_fail_save(self, todo_document):
        reminders = FakeReminders()
        controller = SyncController(MemoryStore(todo_document), reminders=reminders)
        await controller.connect()

        card = Card(id=55, title="Pay", reminder_email="a@example.com", reminder_date_time="not a date")
        assert await controller.add_card(1, card) is True
        assert reminders.requests == []


def test_create_controller_from_config():
    config = Config(
        store=StoreConfig(kind="memory"),
        sync=SyncConfig(user_name="Lucia"),
        reminders=ReminderConfig(endpoint_url="http://localhost:3001"),
    )
    controller = create_controller(config)
    assert isinstance(controller.store, MemoryStore)
    assert controller.user_name == "Lucia"
    assert isinstance(controller.reminders, ReminderClient)


def test_create_controller_without_reminder_endpoint():
    controller = create_controller(Config())
    assert controller.reminders is None
    assert isinstance(controller.store, BoardStore)


class TestFactories:

    async def test_new_card_is_credited(self, todo_document):
        controller = SyncController(MemoryStore(todo_document), user_name="Ana")
        card = controller.new_card("Plan sprint", assignee="Carlos", due_date="2025-09-01")

        assert card.created_by == "Ana"
        assert card.created_at is not None
        assert card.assignee == "Carlos"
        assert 0 < card.id < 2 ** 53

    async def test_new_ids_do_not_collide(self, todo_document):
        controller = SyncController(MemoryStore(todo_document))
        await controller.connect()
        for n in range(20):
            assert await controller.add_card(1, controller.new_card(f"Card {n}"))
            assert await controller.add_board(controller.new_board(f"Board {n}"))

        assert len(set(controller.document.card_ids())) == 20
        assert len(controller.document.boards) == 21


async def test_add_move_scenario(todo_document):
    store = MemoryStore(todo_document)
    async with SyncController(store, user_name="Ana") as controller:
        assert await controller.add_card(1, Card(id=100, title="A"))
        assert controller.document.version == 2

        assert await controller.add_board(Board(id=2, title="Doing"))
        assert await controller.move_card(100, 1, 2)

        assert controller.document.find_board(1).cards == []
        assert [card.id for card in controller.document.find_board(2).cards] == [100]
        assert controller.document.version == 4

    assert (await store.load()).document.version == 4


def test_sources_compile_without_warnings():
    package = Path(sync_module.__file__).resolve().parents[1]
    for path in sorted(package.rglob("*.py")):
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            compile(path.read_text(encoding="utf-8"), str(path), "exec")
