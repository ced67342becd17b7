"""Exception hierarchy for the spannerload package."""

from typing import Any, Optional


class SpannerLoadError(Exception):
    """Base exception for all spannerload errors."""

    def __init__(self, message: str, context: dict | None = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} ({context_str})"
        return self.message


class ConfigError(SpannerLoadError):
    """Raised when sink configuration loading or validation fails."""

    pass


class InputError(SpannerLoadError):
    """Raised when an input file cannot be read."""

    pass


class EngineError(SpannerLoadError):
    """Raised when the sink runner fails.

    Carries the partial SinkResult when one is available.
    """

    def __init__(self, message: str, context: dict | None = None, result: Any = None):
        super().__init__(message, context)
        self.result = result


# ========== Per-record errors ==========


class RecordError(SpannerLoadError):
    """Base for errors that reject a single record.

    The offending record is skipped and reported; the batch being
    accumulated from other records is not affected.
    """

    def __init__(self, message: str, field: Optional[str] = None, context: dict | None = None):
        context = dict(context or {})
        if field is not None:
            context.setdefault("field", field)
        super().__init__(message, context)
        self.field = field


class TypeMismatchError(RecordError):
    """Raised when a value cannot be losslessly converted to its column type."""

    pass


class NullNotAllowedError(RecordError):
    """Raised when NULL is supplied for a non-nullable column."""

    pass


class MissingRequiredFieldError(RecordError):
    """Raised when a record lacks a non-nullable column."""

    pass


class MissingKeyError(RecordError):
    """Raised when a primary-key column is absent or NULL."""

    pass


# ========== Per-batch errors ==========


class CommitError(SpannerLoadError):
    """Base for errors that fail a whole batch."""

    def __init__(self, message: str, result: Any = None, context: dict | None = None):
        super().__init__(message, context)
        self.result = result


class CommitRejectedError(CommitError):
    """Raised when the store rejects a batch with a non-retryable error."""

    def __init__(
        self,
        message: str,
        operation_index: Optional[int] = None,
        result: Any = None,
        context: dict | None = None,
    ):
        super().__init__(message, result=result, context=context)
        self.operation_index = operation_index


class CommitExhaustedError(CommitError):
    """Raised when transient failures outlast the retry limit."""

    def __init__(
        self,
        message: str,
        attempts: int = 0,
        result: Any = None,
        context: dict | None = None,
    ):
        super().__init__(message, result=result, context=context)
        self.attempts = attempts


# ========== Store errors ==========


class StoreError(SpannerLoadError):
    """Raised when store operations fail."""

    pass


class TransientStoreError(StoreError):
    """Raised by stores for failures that may succeed on retry (network, throttling)."""

    pass


class StoreRejectedError(StoreError):
    """Raised by stores when a submission is refused (constraint violation, malformed write)."""

    def __init__(
        self,
        message: str,
        operation_index: Optional[int] = None,
        context: dict | None = None,
    ):
        super().__init__(message, context)
        self.operation_index = operation_index
