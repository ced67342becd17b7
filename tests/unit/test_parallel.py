"""Unit tests for parallel execution."""

import asyncio
import threading

import pytest

from spannerload.core.engine import setup
from spannerload.core.exceptions import EngineError
from spannerload.core.parallel import AsyncParallelWriter, run_async, write_parallel


def records(count: int):
    return [{"id": i, "name": f"n{i}"} for i in range(count)]


class ConcurrencyTrackingStore:
    """Memory-backed store that records how many submits overlap."""

    def __init__(self, inner):
        self.inner = inner
        self.active = 0
        self.max_active = 0
        self._lock = threading.Lock()
        self._barrier = threading.Barrier(2, timeout=2)

    def prepare(self, table, schema, key_columns):
        self.inner.prepare(table, schema, key_columns)

    def submit(self, operations, timeout=None):
        with self._lock:
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        try:
            # The first two submits wait for each other
            try:
                self._barrier.wait()
            except threading.BrokenBarrierError:
                pass
            self.inner.submit(operations, timeout=timeout)
        finally:
            with self._lock:
                self.active -= 1

    def close(self):
        pass


class TestAsyncParallelWriter:
    def test_all_records_written_once(self, sink_config, memory_store):
        context = setup(sink_config, store=memory_store)
        result = asyncio.run(write_parallel(context, records(25), parallelism=4))

        assert result.records_received == 25
        assert result.operations_written == 25
        assert [row["id"] for row in memory_store.rows("people")] == list(range(25))
        assert context.metrics.operations_committed == 25

    def test_workers_use_distinct_batch_ids(self, sink_config, memory_store):
        context = setup(sink_config, store=memory_store)
        result = asyncio.run(write_parallel(context, records(12), parallelism=3))

        batch_ids = [b.batch_id for b in result.committed_batches]
        assert len(batch_ids) == len(set(batch_ids))
        assert {batch_id.split("-")[0] for batch_id in batch_ids} == {"worker0", "worker1", "worker2"}

    def test_commits_run_concurrently(self, sink_config, memory_store):
        store = ConcurrencyTrackingStore(memory_store)
        context = setup(sink_config, store=store)
        asyncio.run(write_parallel(context, records(4), parallelism=2))
        assert store.max_active == 2

    def test_rejections_are_merged_in_record_order(self, sink_config, memory_store):
        context = setup(sink_config, store=memory_store)
        data = records(10)
        data[7] = {"name": "no key"}
        data[3] = {"id": 3, "name": 3}

        result = asyncio.run(write_parallel(context, data, parallelism=3))

        assert [r.record_index for r in result.rejected_records] == [3, 7]
        assert result.operations_written == 8

    def test_batch_failure_cancels_workers(
        self, sink_config, flaky_store_factory, rejected, no_sleep
    ):
        store = flaky_store_factory([rejected(index=0)])
        context = setup(sink_config, store=store)

        with pytest.raises(EngineError, match="failed") as exc_info:
            asyncio.run(write_parallel(context, records(200), parallelism=2))

        partial = exc_info.value.result
        assert len(partial.failed_batches) == 1
        assert partial.operations_written == len(store.inner.rows("people"))
        assert partial.operations_written < 100

    def test_source_error_is_wrapped(self, sink_config, memory_store):
        def broken():
            yield {"id": 1, "name": "a"}
            raise OSError("disk gone")

        context = setup(sink_config, store=memory_store)
        with pytest.raises(EngineError, match="disk gone"):
            asyncio.run(write_parallel(context, broken(), parallelism=2))

    def test_rejects_invalid_parallelism(self, sink_config, memory_store):
        with pytest.raises(ValueError):
            AsyncParallelWriter(setup(sink_config, store=memory_store), 0)


class TestRunAsync:
    def test_runs_coroutine(self):
        async def answer():
            return 42

        assert run_async(answer()) == 42

    def test_refuses_nested_loop(self):
        async def outer():
            async def inner():
                return 1

            with pytest.raises(EngineError, match="running event loop"):
                run_async(inner())

        asyncio.run(outer())
