"""Cloud Spanner store module."""

from spannerload.stores.spanner.store import SpannerStore, create_spanner_store
from spannerload.stores.spanner.type_mapper import SpannerTypeMapper

__all__ = [
    "SpannerStore",
    "SpannerTypeMapper",
    "create_spanner_store",
]
