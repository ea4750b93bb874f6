from datetime import date
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from approvalflow.core.config import Settings
from approvalflow.db.dal import Database
from approvalflow.db.migrate import apply_migrations
from approvalflow.db.seed import seed_demo_company
from approvalflow.main import create_app
from approvalflow.models import ExpenseIn, UserIdentity
from approvalflow.services.directory import SqliteDirectory
from approvalflow.services.expenses import create_expense


class RecordingNotifier:
    def __init__(self):
        self.calls = []

    def next_approver_pending(self, expense_id, approval_id, approver_id):
        self.calls.append((expense_id, approval_id, approver_id))


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    path = tmp_path / "test.sqlite3"
    apply_migrations(path)
    return path


@pytest.fixture
def db(db_path: Path) -> Database:
    return Database(db_path)


@pytest.fixture
def directory(db: Database) -> SqliteDirectory:
    return SqliteDirectory(db)


@pytest.fixture
def org(db_path: Path) -> dict:
    """Company with chain [manager, admin] and employee -> manager."""
    return seed_demo_company(db_path)


@pytest.fixture
def identity(directory):
    def _identity(user_id: int) -> UserIdentity:
        return directory.resolve_user(user_id)

    return _identity


@pytest.fixture
def submit(db, directory, identity):
    """Submit an expense as `user_id`; returns (expense_row, InstantiationResult)."""

    def _submit(user_id: int, amount: float = 42.0):
        payload = ExpenseIn(
            amount=amount,
            currency="usd",
            description="Client dinner",
            expense_date=date.today(),
        )
        return create_expense(db, directory, payload, identity(user_id))

    return _submit


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(db_path=tmp_path / "api.sqlite3", debug=False)


@pytest.fixture
def client(settings: Settings, notifier: RecordingNotifier):
    app = create_app(settings_override=settings, notifier=notifier)
    with TestClient(app) as c:
        yield c


@pytest.fixture
def api_org(client, settings: Settings) -> dict:
    return seed_demo_company(settings.db_path)


@pytest.fixture
def as_user():
    def _headers(user_id: int) -> dict:
        return {"X-User-Id": str(user_id)}

    return _headers
