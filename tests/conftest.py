"""Pytest fixtures for order service tests."""

import os
from pathlib import Path

# Settings are cached on first use; pin test values before anything imports orderhub
os.environ.setdefault("LOG_DIR", "")
os.environ.setdefault("ENABLE_LISTENER", "false")
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

import pytest

from orderhub.errors import StorageError
from orderhub.models.base import create_db_engine
from orderhub.services.order_service import OrderService
from orderhub.services.order_store import OrderStore
from orderhub.utils.cache import OrderCache

TESTDATA = Path(__file__).parent / "testdata"


class CountingStore(OrderStore):
    """OrderStore that records how often the database is read."""

    def __init__(self, engine):
        super().__init__(engine)
        self.get_order_calls = 0
        self.save_calls = 0

    def get_order(self, order_uid):
        self.get_order_calls += 1
        return super().get_order(order_uid)

    def save_order(self, order, raw):
        self.save_calls += 1
        return super().save_order(order, raw)


class FailingStore(OrderStore):
    """OrderStore whose every read and write fails."""

    def save_order(self, order, raw):
        raise StorageError("save", ConnectionError("database unavailable"))

    def get_order(self, order_uid):
        raise StorageError("get", ConnectionError("database unavailable"))

    def get_all_orders(self):
        raise StorageError("get_all", ConnectionError("database unavailable"))


@pytest.fixture
def engine(tmp_path):
    """SQLite engine on a per-test database file."""
    engine = create_db_engine(f"sqlite:///{tmp_path / 'orders.db'}")
    yield engine
    engine.dispose()


@pytest.fixture
def store(engine):
    store = CountingStore(engine)
    store.ensure_schema()
    return store


@pytest.fixture
def failing_store(engine):
    store = FailingStore(engine)
    store.ensure_schema()
    return store


@pytest.fixture
def cache():
    return OrderCache()


@pytest.fixture
def service(store, cache):
    return OrderService(store, cache)


@pytest.fixture
def sample_payload():
    """Full order as published upstream."""
    return (TESTDATA / "model.json").read_bytes()


@pytest.fixture
def invalid_type_payload():
    """Order with string values where integers are expected."""
    return (TESTDATA / "model2.json").read_bytes()


@pytest.fixture
def minimal_payload():
    """Order with only a few top-level fields and an unparsable date."""
    return (TESTDATA / "model3.json").read_bytes()
