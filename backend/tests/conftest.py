"""Shared fixtures for Taskboard tests."""

import textwrap

import pytest

from taskboard.config import reset_config
from taskboard.models.document import BoardDocument


@pytest.fixture
def todo_document() -> BoardDocument:
    """One empty "To Do" board at version 1."""
    return BoardDocument.from_wire({
        "boards": [{"id": 1, "title": "To Do", "color": "bg-blue-500", "cards": []}],
        "version": 1,
        "lastUpdated": "2025-01-01T00:00:00+00:00",
        "lastUpdatedBy": "System",
    })


@pytest.fixture
def three_board_document() -> BoardDocument:
    return BoardDocument.from_wire({
        "boards": [
            {
                "id": 1,
                "title": "To Do",
                "color": "bg-blue-500",
                "cards": [
                    {"id": 10, "title": "Design UI", "assignee": "Ana", "dueDate": "2025-08-20"},
                    {"id": 11, "title": "Set up database", "assignee": "Carlos"},
                ],
            },
            {
                "id": 2,
                "title": "In Progress",
                "color": "bg-yellow-500",
                "cards": [{"id": 20, "title": "Build API", "createdBy": "Maria", "createdAt": "2025-08-01T10:00:00Z"}],
            },
            {"id": 3, "title": "Done", "color": "bg-green-500", "cards": []},
        ],
        "version": 7,
        "lastUpdated": "2025-08-02T09:00:00+00:00",
        "lastUpdatedBy": "Ana",
    })


@pytest.fixture
def config_file(tmp_path, monkeypatch):
    """Point Taskboard at a YAML config with a throwaway database."""
    path = tmp_path / "config.yml"
    path.write_text(textwrap.dedent(f"""\
        database:
          path: {tmp_path / "taskboard.db"}
        logging:
          level: warning
        reminders:
          sweep_enabled: false
          retention_hours: 24
        """))
    for name in (
        "TASKBOARD_STORE_KIND",
        "TASKBOARD_STORE_URL",
        "TASKBOARD_STORE_CREDENTIAL",
        "TASKBOARD_DB_PATH",
        "TASKBOARD_LOG_LEVEL",
        "TASKBOARD_USER_NAME",
        "TASKBOARD_SMTP_HOST",
        "TASKBOARD_SMTP_PASSWORD",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("TASKBOARD_CONFIG", str(path))
    reset_config()
    yield path
    reset_config()


class FakeNotifier:
    """Stands in for NotificationService and records every reminder."""

    def __init__(self, succeed: bool = True):
        self.succeed = succeed
        self.sent = []

    async def notify_reminder(self, recipient_email, card_title, scheduled_at, board_title=None):
        self.sent.append((recipient_email, card_title, scheduled_at, board_title))
        return self.succeed


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def client(config_file, notifier, monkeypatch):
    """TestClient for a fresh app on a throwaway database."""
    from fastapi.testclient import TestClient

    from taskboard.main import create_app
    from taskboard.routers.reminders import get_notifier
    from taskboard.services import broadcast

    monkeypatch.setattr(broadcast, "_broadcaster", None)
    app = create_app()
    app.dependency_overrides[get_notifier] = lambda: notifier
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
async def db_session(config_file):
    """A session on a throwaway database, closed after the test."""
    from taskboard.models.database import close_db, get_db, init_db

    await init_db()
    sessions = get_db()
    session = await anext(sessions)
    yield session
    await sessions.aclose()
    await close_db()
