"""Pytest configuration and shared fixtures."""

import logging
import tempfile
import threading
from pathlib import Path
from typing import Optional, Sequence

import pytest

from spannerload.core.exceptions import StoreRejectedError, TransientStoreError
from spannerload.core.mutation import WriteOperation
from spannerload.core.schema import Schema
from spannerload.models.sink_config import SinkConfig
from spannerload.stores.memory import MemoryStore


@pytest.fixture(autouse=True)
def restore_logger():
    """Undo configure_logging() calls made by a test."""
    logger = logging.getLogger("spannerload")
    handlers, level = list(logger.handlers), logger.level
    yield
    logger.handlers[:] = handlers
    logger.setLevel(level)


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def config_dir(temp_dir):
    """Create a sinks subdirectory in temp_dir."""
    sinks_dir = temp_dir / "sinks"
    sinks_dir.mkdir()
    return sinks_dir


@pytest.fixture
def env_vars(monkeypatch):
    """Fixture to set environment variables for testing."""
    test_vars = {
        "TEST_PROJECT": "test-project",
        "TEST_INSTANCE": "test-instance",
        "TEST_DATABASE": "testdb",
    }
    for key, value in test_vars.items():
        monkeypatch.setenv(key, value)
    return test_vars


@pytest.fixture
def people_schema():
    """Two-column schema: id INT64 (key, required), name STRING (nullable)."""
    return Schema.from_dict(
        [
            {"name": "id", "type": "INT64", "nullable": False},
            {"name": "name", "type": "STRING"},
        ]
    )


@pytest.fixture
def sink_config_dict():
    """Minimal sink config dictionary writing to the memory store."""
    return {
        "name": "people_sink",
        "table": "people",
        "key_columns": ["id"],
        "schema": [
            {"name": "id", "type": "INT64", "nullable": False},
            {"name": "name", "type": "STRING"},
        ],
        "batching": {"max_operations": 2},
        "retry": {"max_retries": 1, "retry_delay": 0.0},
    }


@pytest.fixture
def sink_config(sink_config_dict):
    return SinkConfig.from_dict(sink_config_dict)


@pytest.fixture
def memory_store():
    return MemoryStore()


@pytest.fixture
def no_sleep(monkeypatch):
    """Record retry delays instead of sleeping."""
    delays = []
    monkeypatch.setattr(
        "spannerload.core.committer.time.sleep", lambda seconds: delays.append(seconds)
    )
    return delays


class FlakyStore:
    """Store double that fails according to a script, then delegates.

    ``failures`` is consumed one entry per submit call; each entry is an
    exception to raise, or None to let the submission through to ``inner``.
    """

    def __init__(self, failures=(), inner: Optional[MemoryStore] = None):
        self.failures = list(failures)
        self.inner = inner or MemoryStore()
        self.calls = 0
        self.submitted: list[tuple[WriteOperation, ...]] = []
        self.timeouts: list[Optional[float]] = []
        self.closed = False
        self._lock = threading.Lock()

    def prepare(self, table: str, schema: Schema, key_columns: Sequence[str]) -> None:
        self.inner.prepare(table, schema, key_columns)

    def submit(self, operations: Sequence[WriteOperation], timeout: Optional[float] = None) -> None:
        with self._lock:
            self.calls += 1
            self.submitted.append(tuple(operations))
            self.timeouts.append(timeout)
            failure = self.failures.pop(0) if self.failures else None
        if failure is not None:
            raise failure
        self.inner.submit(operations, timeout=timeout)

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def flaky_store_factory():
    """Build FlakyStore instances from a failure script."""
    return FlakyStore


@pytest.fixture
def transient():
    return lambda message="unavailable": TransientStoreError(message)


@pytest.fixture
def rejected():
    return lambda index=None, message="constraint violation": StoreRejectedError(
        message, operation_index=index
    )
