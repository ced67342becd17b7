"""Async parallel execution for sink writes."""

import asyncio
import logging
from typing import Any, Iterable, Mapping

from spannerload.core.engine import SinkContext, SinkResult, SinkWorker
from spannerload.core.exceptions import EngineError, RecordError

logger = logging.getLogger(__name__)

_DONE = object()


class AsyncParallelWriter:
    """Shards a record stream across worker tasks.

    Records are dealt round-robin to ``parallelism`` workers. Each worker owns
    its accumulator and commits its own batches, so commits from different
    workers run concurrently. Batches from different workers carry no
    relative ordering; operations within a batch keep submission order.
    """

    def __init__(self, context: SinkContext, parallelism: int, queue_size: int | None = None):
        """Initialize the writer.

        Args:
            context: Sink context shared by all workers
            parallelism: Number of worker tasks
            queue_size: Per-worker queue bound (defaults to the batch size)
        """
        if parallelism < 1:
            raise ValueError("parallelism must be at least 1")
        self.context = context
        self.parallelism = parallelism
        self.queue_size = queue_size or context.config.batching.max_operations

    async def write(self, records: Iterable[Mapping[str, Any]]) -> SinkResult:
        """Write all records and return the merged result.

        If any worker stops with an error, the other workers are cancelled:
        in-flight commits settle, open batches are discarded, and the first
        error is raised with the merged partial result attached.
        """
        queues: list[asyncio.Queue] = [
            asyncio.Queue(maxsize=self.queue_size) for _ in range(self.parallelism)
        ]
        workers = [
            SinkWorker(self.context, batch_prefix=f"worker{i}")
            for i in range(self.parallelism)
        ]
        tasks = [
            asyncio.create_task(self._run_worker(worker, queue))
            for worker, queue in zip(workers, queues)
        ]
        producer = asyncio.create_task(self._produce(records, queues))

        error: BaseException | None = None
        try:
            done, pending = await asyncio.wait(
                [producer, *tasks], return_when=asyncio.FIRST_EXCEPTION
            )
            for task in done:
                if not task.cancelled() and task.exception() is not None:
                    error = task.exception()
                    break
            if error is not None:
                await self._cancel(pending)
        except asyncio.CancelledError:
            await self._cancel([producer, *tasks])
            raise
        finally:
            result = self._merge(workers)

        if error is not None:
            if isinstance(error, EngineError):
                error.result = result
                raise error
            raise EngineError(
                f"Parallel write failed: {error}",
                context={"sink_name": self.context.name, "parallelism": self.parallelism},
                result=result,
            ) from error
        return result

    async def _produce(self, records: Iterable[Mapping[str, Any]], queues: list[asyncio.Queue]) -> None:
        for index, record in enumerate(records):
            await queues[index % len(queues)].put((index, record))
        for queue in queues:
            await queue.put(_DONE)

    async def _run_worker(self, worker: SinkWorker, queue: asyncio.Queue) -> None:
        try:
            while True:
                item = await queue.get()
                if item is _DONE:
                    break
                index, record = item
                try:
                    batch = worker.accept(index, record)
                except RecordError as e:
                    pending = worker.flush()
                    if pending is not None:
                        await worker.commit_async(pending)
                    raise EngineError(
                        f"Record {index} rejected: {e.message}",
                        context={"sink_name": self.context.name, "record_index": index},
                    ) from e
                if batch is not None:
                    await worker.commit_async(batch)

            batch = worker.flush()
            if batch is not None:
                await worker.commit_async(batch)
        except BaseException:
            worker.discard()
            raise

    async def _cancel(self, tasks) -> None:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    def _merge(self, workers: list[SinkWorker]) -> SinkResult:
        result = SinkResult()
        for worker in workers:
            result.merge(worker.result)
            self.context.metrics.merge(worker.metrics)
        self.context.metrics.finish()
        result.metrics = self.context.metrics.to_dict()
        return result


async def write_parallel(
    context: SinkContext,
    records: Iterable[Mapping[str, Any]],
    parallelism: int,
) -> SinkResult:
    """Write records with ``parallelism`` concurrent workers."""
    logger.info(
        f"Writing with {parallelism} workers",
        extra={"sink_name": context.name, "table": context.config.table},
    )
    return await AsyncParallelWriter(context, parallelism).write(records)


def run_async(coro):
    """Run a coroutine from synchronous code.

    Args:
        coro: Coroutine to run

    Returns:
        Result of the coroutine

    Raises:
        EngineError: If called while an event loop is already running
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    coro.close()
    raise EngineError("run_async() cannot be used inside a running event loop; await instead")
