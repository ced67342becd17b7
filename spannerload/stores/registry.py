"""Store registry for managing store factories.

Stores register a factory under a type name; the sink runner looks the
factory up from the ``store.type`` config value.
"""

from __future__ import annotations

from typing import Callable, overload

from spannerload.core.exceptions import StoreError
from spannerload.models.sink_config import StoreConfig
from spannerload.stores.base import Store

StoreFactory = Callable[[StoreConfig], Store]

# Global registry
_store_registry: dict[str, StoreFactory] = {}


@overload
def register_store(store_type: str) -> Callable[[StoreFactory], StoreFactory]: ...


@overload
def register_store(store_type: str, factory: StoreFactory) -> None: ...


def register_store(
    store_type: str,
    factory: StoreFactory | None = None,
) -> Callable[[StoreFactory], StoreFactory] | None:
    """Register a store factory.

    Can be used as a decorator or called directly:

        # As decorator
        @register_store("duckdb")
        def create_duckdb_store(config):
            return DuckDBStore(config)

        # Direct call
        register_store("duckdb", create_duckdb_store)

    Args:
        store_type: Unique identifier for the store (e.g., 'duckdb', 'spanner').
        factory: Factory function (optional if used as decorator).

    Raises:
        StoreError: If a store with the same type is already registered.
    """

    def _register(f: StoreFactory) -> StoreFactory:
        if store_type in _store_registry:
            raise StoreError(
                f"Store '{store_type}' is already registered",
                context={"store_type": store_type},
            )
        _store_registry[store_type] = f
        return f

    if factory is not None:
        _register(factory)
        return None

    return _register


def get_store(config: StoreConfig) -> Store:
    """Create a store instance using the registered factory.

    Raises:
        StoreError: If the store type is not registered.
    """
    factory = _store_registry.get(config.type)
    if factory is None:
        available = ", ".join(sorted(_store_registry.keys())) or "(none)"
        raise StoreError(
            f"Unknown store type: '{config.type}'",
            context={"store_type": config.type, "available_types": available},
        )
    return factory(config)


def list_store_types() -> list[str]:
    """Return a list of all registered store types."""
    return sorted(_store_registry.keys())


def clear_registry() -> None:
    """Clear all registered stores. Intended for testing only."""
    _store_registry.clear()
