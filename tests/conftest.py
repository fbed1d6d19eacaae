"""Shared fixtures for print notifier tests."""

import pytest
import pytest_asyncio

from print_notifier.config.environment import EnvironmentConfig
from print_notifier.config.models import AppConfig
from print_notifier.logging.context import clear_log_context
from print_notifier.notifications.formatter import NotificationFormatter
from print_notifier.reconciler.service import CompletionReconciler
from print_notifier.store.database import Database
from print_notifier.store.repositories import JobStore

from tests.helpers import InMemoryJobStore, RecordingGateway, make_job, make_user


@pytest.fixture(autouse=True)
def clean_log_context():
    clear_log_context()
    yield
    clear_log_context()


@pytest.fixture
def mock_env_vars(monkeypatch):
    """Set the environment variables required by load_environment_config."""
    monkeypatch.setenv("SMTP_HOST", "smtp.test.com")
    monkeypatch.setenv("SMTP_PORT", "587")
    monkeypatch.setenv("SMTP_USER", "notifier@test.com")
    monkeypatch.setenv("SMTP_PASS", "testpass123")
    for name in ("SMTP_SENDER_NAME", "LOG_LEVEL", "DATABASE_URL", "PORT"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def env_config():
    return EnvironmentConfig(
        smtp_host="smtp.test.com",
        smtp_port=587,
        smtp_user="notifier@test.com",
        smtp_pass="testpass123",
        smtp_sender_name="PrintSuit",
    )


@pytest.fixture
def app_config():
    return AppConfig()


@pytest.fixture
def store():
    """In-memory store holding job J1 owned by user U1 (scenario data)."""
    return InMemoryJobStore(jobs=[make_job()], users=[make_user()])


@pytest.fixture
def gateway():
    return RecordingGateway()


@pytest.fixture
def formatter():
    return NotificationFormatter(sender="PrintSuit <notifier@test.com>")


@pytest.fixture
def reconciler(store, formatter, gateway):
    return CompletionReconciler(store, formatter, gateway)


@pytest_asyncio.fixture
async def database(tmp_path):
    """Connected database on a throwaway SQLite file."""
    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'notifier.db'}")
    await db.connect()
    yield db
    await db.close()


@pytest_asyncio.fixture
async def job_store(database):
    return JobStore(database)
