"""Configuration models for spannerload."""

from spannerload.models.loader import load_sink_config
from spannerload.models.sink_config import (
    BatchingConfig,
    RetryConfig,
    SinkConfig,
    StoreConfig,
)

__all__ = [
    "BatchingConfig",
    "RetryConfig",
    "SinkConfig",
    "StoreConfig",
    "load_sink_config",
]
