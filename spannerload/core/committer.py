"""Transactional batch commits with retry and failure classification."""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Optional

from spannerload.core.batch import Batch, BatchState
from spannerload.core.exceptions import (
    CommitExhaustedError,
    CommitRejectedError,
    StoreRejectedError,
    TransientStoreError,
)
from spannerload.stores.base import Store

logger = logging.getLogger(__name__)

# Failures worth retrying: the whole batch is resubmitted.
TRANSIENT_ERRORS: tuple[type[BaseException], ...] = (
    TransientStoreError,
    TimeoutError,
    ConnectionError,
)


@dataclass(frozen=True)
class CommitFailure:
    """Why a batch failed and, when known, which operation caused it."""

    reason: str
    operation_index: Optional[int] = None


@dataclass(frozen=True)
class CommitResult:
    """Outcome of committing one batch."""

    batch_id: str
    succeeded_count: int
    attempts: int
    state: BatchState
    failure: Optional[CommitFailure] = None
    history: tuple[BatchState, ...] = ()

    @property
    def committed(self) -> bool:
        return self.state == BatchState.COMMITTED


class BatchCommitter:
    """Submits sealed batches to a store as single atomic transactions.

    Transient failures (network errors, throttling, timeouts) retry the
    whole batch with exponential backoff. Non-retryable failures are
    reported immediately. Operations are never reordered or split.
    """

    def __init__(
        self,
        store: Store,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        backoff_rate: float = 2.0,
        max_delay: float = 30.0,
        commit_timeout: Optional[float] = None,
    ):
        """Initialize the committer.

        Args:
            store: Target store receiving the batches
            max_retries: Retries allowed after the first attempt
            retry_delay: Delay before the first retry, in seconds
            backoff_rate: Multiplier applied to the delay on each retry
            max_delay: Upper bound for a single retry delay
            commit_timeout: Timeout passed to the store for each attempt
        """
        if max_retries < 0:
            raise ValueError("max_retries must be non-negative")
        if retry_delay < 0:
            raise ValueError("retry_delay must be non-negative")
        if backoff_rate < 1.0:
            raise ValueError("backoff_rate must be at least 1.0")
        self._store = store
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.backoff_rate = backoff_rate
        self.max_delay = max_delay
        self.commit_timeout = commit_timeout

    @property
    def store(self) -> Store:
        return self._store

    def backoff_delay(self, retry_index: int) -> float:
        """Delay before retry number ``retry_index`` (0-based)."""
        return min(self.retry_delay * (self.backoff_rate**retry_index), self.max_delay)

    def commit(self, batch: Batch) -> CommitResult:
        """Commit a batch as one transaction.

        Returns:
            CommitResult in the COMMITTED state

        Raises:
            CommitRejectedError: On a non-retryable failure (not retried)
            CommitExhaustedError: When transient failures outlast max_retries
        """
        history = [BatchState.SEALED]
        attempt = 0
        while True:
            attempt += 1
            self._transition(batch, history, BatchState.SUBMITTING, attempt)
            try:
                self._store.submit(batch.operations, timeout=self.commit_timeout)
            except TRANSIENT_ERRORS as e:
                if attempt > self.max_retries:
                    self._transition(batch, history, BatchState.FAILED, attempt)
                    result = self._failed(batch, attempt, history, str(e) or type(e).__name__)
                    logger.error(
                        f"Commit failed after {attempt} attempts: {e}",
                        extra={"batch_id": batch.batch_id},
                    )
                    raise CommitExhaustedError(
                        f"Commit retries exhausted after {attempt} attempts: {e}",
                        attempts=attempt,
                        result=result,
                        context={"batch_id": batch.batch_id},
                    ) from e
                delay = self.backoff_delay(attempt - 1)
                self._transition(batch, history, BatchState.RETRYING, attempt)
                logger.warning(
                    f"Transient commit failure on attempt {attempt}, retrying in {delay:.2f}s: {e}",
                    extra={"batch_id": batch.batch_id},
                )
                time.sleep(delay)
                continue
            except StoreRejectedError as e:
                raise self._rejected(batch, attempt, history, e, e.operation_index) from e
            except Exception as e:
                # Unclassified store failures are not retried
                raise self._rejected(batch, attempt, history, e, None) from e

            self._transition(batch, history, BatchState.COMMITTED, attempt)
            logger.debug(
                f"Committed {len(batch)} operations in {attempt} attempt(s)",
                extra={"batch_id": batch.batch_id},
            )
            return CommitResult(
                batch_id=batch.batch_id,
                succeeded_count=len(batch),
                attempts=attempt,
                state=BatchState.COMMITTED,
                history=tuple(history),
            )

    async def commit_async(self, batch: Batch) -> CommitResult:
        """Commit a batch from async code.

        The commit runs in the default executor. If the calling task is
        cancelled, the in-flight commit is allowed to finish (or fail)
        before the cancellation propagates.
        """
        loop = asyncio.get_running_loop()
        future = loop.run_in_executor(None, self.commit, batch)
        try:
            return await asyncio.shield(future)
        except asyncio.CancelledError:
            logger.warning(
                "Cancelled during commit; waiting for the in-flight transaction to settle",
                extra={"batch_id": batch.batch_id},
            )
            await asyncio.wait([future])
            raise

    def _rejected(
        self,
        batch: Batch,
        attempt: int,
        history: list[BatchState],
        error: Exception,
        operation_index: Optional[int],
    ) -> CommitRejectedError:
        self._transition(batch, history, BatchState.FAILED, attempt)
        result = self._failed(batch, attempt, history, str(error), operation_index)
        logger.error(
            f"Commit rejected: {error}",
            extra={"batch_id": batch.batch_id},
        )
        context = {"batch_id": batch.batch_id}
        if operation_index is not None:
            context["operation_index"] = operation_index
        return CommitRejectedError(
            f"Commit rejected: {error}",
            operation_index=operation_index,
            result=result,
            context=context,
        )

    def _failed(
        self,
        batch: Batch,
        attempt: int,
        history: list[BatchState],
        reason: str,
        operation_index: Optional[int] = None,
    ) -> CommitResult:
        return CommitResult(
            batch_id=batch.batch_id,
            succeeded_count=0,
            attempts=attempt,
            state=BatchState.FAILED,
            failure=CommitFailure(reason=reason, operation_index=operation_index),
            history=tuple(history),
        )

    def _transition(
        self, batch: Batch, history: list[BatchState], state: BatchState, attempt: int
    ) -> None:
        history.append(state)
        logger.debug(
            f"Batch -> {state.value} (attempt {attempt})",
            extra={"batch_id": batch.batch_id},
        )
