"""Unit tests for write operations and the batch accumulator."""

from datetime import date, datetime, timezone

import pytest

from spannerload.core.batch import BatchAccumulator
from spannerload.core.mutation import OperationKind, WriteOperation, estimate_value_size


def op(key: int, payload: str = "") -> WriteOperation:
    columns = {"id": key}
    if payload:
        columns["p"] = payload
    return WriteOperation(table="t", kind=OperationKind.INSERT, columns=columns, key_columns=("id",))


class TestWriteOperation:
    def test_estimated_size(self):
        # table "t" (1) + "id" (2) + int64 (8)
        assert op(1).estimated_size() == 11
        # plus "p" (1) + 10 bytes of text
        assert op(1, "x" * 10).estimated_size() == 22

    def test_value_sizes(self):
        assert estimate_value_size(None) == 1
        assert estimate_value_size("é") == 2
        assert estimate_value_size(b"abc") == 3
        assert estimate_value_size(True) == 1
        assert estimate_value_size(datetime(2024, 1, 1, tzinfo=timezone.utc)) == 12
        assert estimate_value_size(date(2024, 1, 1)) == 4
        assert estimate_value_size([1, 2]) == 8 + 16

    def test_size_of_unencodable_string(self):
        assert estimate_value_size("\ud800") == 3


class TestBatchAccumulator:
    def test_seals_on_operation_count(self):
        accumulator = BatchAccumulator(max_operations=2, max_bytes=10_000)
        assert accumulator.add(op(1)) is None
        batch = accumulator.add(op(2))

        assert batch is not None
        assert batch.batch_id == "batch-1"
        assert [o.key for o in batch.operations] == [(1,), (2,)]
        assert accumulator.pending_count == 0

    def test_seals_on_byte_bound(self):
        accumulator = BatchAccumulator(max_operations=100, max_bytes=22)
        assert accumulator.add(op(1)) is None
        batch = accumulator.add(op(2))
        assert len(batch) == 2
        assert batch.size_bytes == 22

    def test_overflowing_operation_starts_next_batch(self):
        accumulator = BatchAccumulator(max_operations=100, max_bytes=30)
        accumulator.add(op(1))
        batch = accumulator.add(op(2, "x" * 10))

        assert [o.key for o in batch.operations] == [(1,)]
        assert batch.size_bytes <= 30
        assert accumulator.pending_count == 1
        assert accumulator.pending_bytes == 22

    def test_single_oversized_operation_forms_own_batch(self):
        accumulator = BatchAccumulator(max_operations=100, max_bytes=15)
        accumulator.add(op(1))
        first = accumulator.add(op(2, "x" * 50))
        second = accumulator.flush()

        assert len(first) == 1
        assert len(second) == 1
        assert second.size_bytes > 15

    def test_flush_returns_remainder(self):
        accumulator = BatchAccumulator(max_operations=3, max_bytes=10_000)
        for key in range(4):
            accumulator.add(op(key))
        remainder = accumulator.flush()

        assert [o.key for o in remainder.operations] == [(3,)]
        assert accumulator.flush() is None
        assert accumulator.sealed_count == 2

    def test_every_operation_lands_in_exactly_one_batch(self):
        accumulator = BatchAccumulator(max_operations=4, max_bytes=60)
        batches = []
        for key in range(25):
            batch = accumulator.add(op(key, "y" * (key % 7)))
            if batch is not None:
                batches.append(batch)
        tail = accumulator.flush()
        if tail is not None:
            batches.append(tail)

        keys = [o.key[0] for b in batches for o in b.operations]
        assert keys == list(range(25))
        assert all(len(b) <= 4 for b in batches)
        assert all(b.size_bytes <= 60 for b in batches)
        assert len({b.batch_id for b in batches}) == len(batches)

    def test_discard_drops_open_batch(self):
        accumulator = BatchAccumulator(max_operations=10, max_bytes=10_000)
        accumulator.add(op(1))
        accumulator.add(op(2))
        assert accumulator.discard() == 2
        assert accumulator.flush() is None

    def test_batch_prefix(self):
        accumulator = BatchAccumulator(max_operations=1, max_bytes=100, batch_prefix="worker0")
        assert accumulator.add(op(1)).batch_id == "worker0-1"

    @pytest.mark.parametrize("kwargs", [{"max_operations": 0, "max_bytes": 1}, {"max_operations": 1, "max_bytes": 0}])
    def test_rejects_invalid_bounds(self, kwargs):
        with pytest.raises(ValueError):
            BatchAccumulator(**kwargs)
