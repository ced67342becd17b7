"""Sink runner: drives records through transformer, accumulator and committer."""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional

from spannerload.core.batch import Batch, BatchAccumulator
from spannerload.core.committer import BatchCommitter, CommitResult
from spannerload.core.exceptions import CommitError, EngineError, RecordError
from spannerload.core.metrics import MetricsCollector
from spannerload.core.transformer import RecordTransformer
from spannerload.models.sink_config import SinkConfig
from spannerload.stores.base import Store
from spannerload.stores.registry import get_store

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RecordRejection:
    """A record the transformer refused, with the reason."""

    record_index: int
    error_type: str
    message: str
    field: Optional[str] = None

    @classmethod
    def from_error(cls, record_index: int, error: RecordError) -> "RecordRejection":
        return cls(
            record_index=record_index,
            error_type=type(error).__name__,
            message=error.message,
            field=error.field,
        )


@dataclass
class SinkResult:
    """Outcome of writing a stream of records."""

    records_received: int = 0
    operations_written: int = 0
    committed_batches: list[CommitResult] = field(default_factory=list)
    failed_batches: list[CommitResult] = field(default_factory=list)
    rejected_records: list[RecordRejection] = field(default_factory=list)
    metrics: dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        """True when no batch failed. Rejected records do not count."""
        return not self.failed_batches

    def merge(self, other: "SinkResult") -> None:
        """Fold another (worker) result into this one."""
        self.records_received += other.records_received
        self.operations_written += other.operations_written
        self.committed_batches.extend(other.committed_batches)
        self.failed_batches.extend(other.failed_batches)
        self.rejected_records.extend(other.rejected_records)
        self.rejected_records.sort(key=lambda r: r.record_index)


@dataclass
class SinkContext:
    """Everything a running sink needs, built once by setup()."""

    config: SinkConfig
    store: Store
    transformer: RecordTransformer
    committer: BatchCommitter
    metrics: MetricsCollector
    owns_store: bool = True

    @property
    def name(self) -> str:
        return self.config.name

    def new_accumulator(self, batch_prefix: str = "batch") -> BatchAccumulator:
        return BatchAccumulator(
            max_operations=self.config.batching.max_operations,
            max_bytes=self.config.batching.max_bytes,
            batch_prefix=batch_prefix,
        )


class SinkWorker:
    """One record stream feeding one accumulator.

    The sequential runner uses a single worker; the parallel runner gives
    each task its own, so workers never share mutable state.
    """

    def __init__(self, context: SinkContext, batch_prefix: str = "batch"):
        self.context = context
        self.accumulator = context.new_accumulator(batch_prefix)
        self.metrics = MetricsCollector(context.name)
        self.result = SinkResult()

    def accept(self, index: int, record: Mapping[str, Any]) -> Optional[Batch]:
        """Transform one record and add it to the open batch.

        Returns:
            A batch sealed by this record, or None

        Raises:
            RecordError: If the record is invalid and on_record_error is "fail"
        """
        self.result.records_received += 1
        self.metrics.record_received()
        try:
            operation = self.context.transformer.transform(record)
        except RecordError as e:
            self.result.rejected_records.append(RecordRejection.from_error(index, e))
            self.metrics.record_rejection(e, index)
            logger.warning(
                f"Record {index} rejected: {e}",
                extra={"table": self.context.config.table},
            )
            if self.context.config.on_record_error == "fail":
                raise
            return None
        return self.accumulator.add(operation)

    def flush(self) -> Optional[Batch]:
        return self.accumulator.flush()

    def discard(self) -> int:
        """Drop the open batch, logging how many operations were lost."""
        dropped = self.accumulator.discard()
        if dropped:
            logger.warning(
                f"Discarded {dropped} uncommitted operations",
                extra={"table": self.context.config.table},
            )
        return dropped

    def commit(self, batch: Batch) -> None:
        start = time.time()
        try:
            commit_result = self.context.committer.commit(batch)
        except CommitError as e:
            self._record_failure(batch, e, time.time() - start)
            return
        self._record_success(batch, commit_result, time.time() - start)

    async def commit_async(self, batch: Batch) -> None:
        start = time.time()
        task = asyncio.ensure_future(self.context.committer.commit_async(batch))
        try:
            commit_result = await asyncio.shield(task)
        except CommitError as e:
            self._record_failure(batch, e, time.time() - start)
            return
        except asyncio.CancelledError:
            # The commit keeps running; record how it ended before unwinding.
            await asyncio.wait([task])
            self._settle(batch, task, time.time() - start)
            raise
        self._record_success(batch, commit_result, time.time() - start)

    def _settle(self, batch: Batch, task: asyncio.Future, elapsed: float) -> None:
        error = task.exception()
        if error is None:
            self._record_success(batch, task.result(), elapsed)
        elif isinstance(error, CommitError):
            self._record_failure(batch, error, elapsed, stop=False)
        else:
            logger.error(
                f"Commit ended with unexpected error during cancellation: {error}",
                extra={"batch_id": batch.batch_id},
            )

    def _record_success(self, batch: Batch, commit_result: CommitResult, elapsed: float) -> None:
        self.result.committed_batches.append(commit_result)
        self.result.operations_written += commit_result.succeeded_count
        self.metrics.record_batch(len(batch), elapsed, attempts=commit_result.attempts)
        logger.info(
            f"Committed batch with {len(batch)} operations",
            extra={"batch_id": batch.batch_id, "table": self.context.config.table},
        )

    def _record_failure(
        self, batch: Batch, error: CommitError, elapsed: float, stop: bool = True
    ) -> None:
        attempts = error.result.attempts if error.result is not None else 1
        if error.result is not None:
            self.result.failed_batches.append(error.result)
        self.metrics.record_batch_failure(
            error, len(batch), attempts=attempts, context={"batch_id": batch.batch_id}
        )
        logger.error(
            f"Batch failed after {elapsed:.2f}s: {error}",
            extra={"batch_id": batch.batch_id, "table": self.context.config.table},
        )
        if stop and self.context.config.on_batch_failure == "fail":
            raise EngineError(
                f"Batch {batch.batch_id} failed: {error.message}",
                context={"sink_name": self.context.name, "batch_id": batch.batch_id},
                result=self.result,
            ) from error


def setup(config: SinkConfig, store: Optional[Store] = None) -> SinkContext:
    """Build the transformer, committer and store for a sink.

    Args:
        config: Sink configuration
        store: Store to write to. When omitted, one is created from
               config.store through the registry and closed on teardown.

    Returns:
        A ready SinkContext

    Raises:
        EngineError: If the store cannot be created or prepared
    """
    owns_store = store is None
    if store is None:
        try:
            store = get_store(config.store)
        except Exception as e:
            raise EngineError(
                f"Failed to create store: {e}",
                context={"sink_name": config.name, "store_type": config.store.type},
            ) from e

    transformer = RecordTransformer(
        table=config.table,
        schema=config.table_schema,
        key_columns=config.key_columns,
        kind=config.operation,
    )

    try:
        store.prepare(config.table, config.table_schema, config.key_columns)
    except Exception as e:
        if owns_store:
            store.close()
        raise EngineError(
            f"Failed to prepare table '{config.table}': {e}",
            context={"sink_name": config.name, "store_type": config.store.type},
        ) from e

    committer = BatchCommitter(
        store,
        max_retries=config.retry.max_retries,
        retry_delay=config.retry.retry_delay,
        backoff_rate=config.retry.backoff_rate,
        max_delay=config.retry.max_delay,
        commit_timeout=config.retry.commit_timeout,
    )

    logger.debug(
        f"Sink ready: table={config.table}, store={config.store.type}",
        extra={"sink_name": config.name},
    )
    return SinkContext(
        config=config,
        store=store,
        transformer=transformer,
        committer=committer,
        metrics=MetricsCollector(config.name),
        owns_store=owns_store,
    )


def write(context: SinkContext, records: Iterable[Mapping[str, Any]]) -> SinkResult:
    """Write records sequentially.

    Batches are committed as soon as they seal; whatever remains is flushed
    at the end of the stream.

    Raises:
        EngineError: On the first failed batch when on_batch_failure is
                     "fail", or on the first invalid record when
                     on_record_error is "fail". The partial result is
                     attached to the error.
    """
    worker = SinkWorker(context)
    try:
        for index, record in enumerate(records):
            try:
                batch = worker.accept(index, record)
            except RecordError as e:
                # Valid operations accumulated so far are still committed.
                pending = worker.flush()
                if pending is not None:
                    worker.commit(pending)
                raise EngineError(
                    f"Record {index} rejected: {e.message}",
                    context={"sink_name": context.name, "record_index": index},
                    result=worker.result,
                ) from e
            if batch is not None:
                worker.commit(batch)

        batch = worker.flush()
        if batch is not None:
            worker.commit(batch)
    except BaseException:
        worker.discard()
        raise
    finally:
        context.metrics.merge(worker.metrics)
        context.metrics.finish()
        worker.result.metrics = context.metrics.to_dict()

    return worker.result


def teardown(context: SinkContext) -> None:
    """Release the store if the sink created it."""
    if context.owns_store:
        context.store.close()
    logger.debug("Sink closed", extra={"sink_name": context.name})


def execute(
    config: SinkConfig,
    records: Iterable[Mapping[str, Any]],
    store: Optional[Store] = None,
) -> SinkResult:
    """Run a sink end to end: setup, write, teardown.

    Uses the parallel runner when config.parallelism is greater than 1.

    Raises:
        EngineError: If the sink cannot be set up or the run stops on a failure
    """
    # Imported here: parallel builds on the worker defined in this module.
    from spannerload.core.parallel import run_async, write_parallel

    logger.info(
        f"Starting sink with parallelism={config.parallelism}",
        extra={"sink_name": config.name, "table": config.table},
    )
    context = setup(config, store)
    try:
        if config.parallelism > 1:
            result = run_async(write_parallel(context, records, config.parallelism))
        else:
            result = write(context, records)
    except EngineError:
        logger.error(
            f"Sink stopped: {context.metrics.get_summary()}",
            extra={"sink_name": config.name},
        )
        raise
    except Exception as e:
        context.metrics.finish()
        error_msg = f"Execution failed: {e}"
        logger.error(error_msg, extra={"sink_name": config.name}, exc_info=True)
        raise EngineError(
            error_msg,
            context={"sink_name": config.name, "metrics": context.metrics.to_dict()},
        ) from e
    finally:
        teardown(context)

    logger.info(
        f"Completed sink: {context.metrics.get_summary()}",
        extra={"sink_name": config.name},
    )
    return result
