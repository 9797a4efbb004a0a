import pytest
from unittest.mock import Mock

from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from core.auth import LocalAnonymousAuth
from core.db import init_db
from core.settings import Settings
from core.store import SqlDocumentStore, Subscription
from screens.students.db import StudentStoreAdapter
from screens.students.models import StudentRecord


@pytest.fixture
def engine():
    """In-memory SQLite engine with every schema installed."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def store(engine) -> SqlDocumentStore:
    return SqlDocumentStore(engine)


@pytest.fixture
def local_auth(engine) -> LocalAnonymousAuth:
    return LocalAnonymousAuth(engine)


@pytest.fixture
def settings() -> Settings:
    return Settings(APP_ID="test-app")


@pytest.fixture
def adapter(store, settings) -> StudentStoreAdapter:
    adapter = StudentStoreAdapter(store, settings.partition_path)
    yield adapter
    adapter.close()


@pytest.fixture
def mock_store():
    """Store double that records calls and never delivers snapshots by itself."""
    store = Mock()
    store.subscribe.side_effect = lambda path, on_snapshot, on_error=None: Subscription(path, Mock())
    store.insert.return_value = "new-id"
    return store


@pytest.fixture
def ana() -> StudentRecord:
    return StudentRecord(id="1", name="Ana Li", email="ana@x.com", student_id="S100")
