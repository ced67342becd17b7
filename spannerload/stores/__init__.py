"""Target stores and the store registry.

This module exposes:
- Store: Protocol for transactional target stores
- Registry functions: register_store, get_store, list_store_types
- Built-in stores: MemoryStore, DuckDBStore, SpannerStore
"""

from spannerload.stores.base import Store

# Registry must be imported first (store modules use decorators on import)
from spannerload.stores.registry import (
    clear_registry,
    get_store,
    list_store_types,
    register_store,
)

# Store modules register themselves via @register_store on import
from spannerload.stores.duckdb.store import DuckDBStore, create_duckdb_store
from spannerload.stores.memory import MemoryStore, create_memory_store
from spannerload.stores.spanner.store import SpannerStore, create_spanner_store


def reregister_builtins() -> None:
    """Re-register built-in stores after the registry is cleared.

    This is intended for tests that call clear_registry() but need
    the built-in stores available afterwards.
    """
    current = list_store_types()
    if "duckdb" not in current:
        register_store("duckdb", create_duckdb_store)
    if "memory" not in current:
        register_store("memory", create_memory_store)
    if "spanner" not in current:
        register_store("spanner", create_spanner_store)


__all__ = [
    "Store",
    "register_store",
    "get_store",
    "list_store_types",
    "clear_registry",
    "reregister_builtins",
    "MemoryStore",
    "DuckDBStore",
    "SpannerStore",
]
