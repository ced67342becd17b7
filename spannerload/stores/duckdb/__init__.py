"""DuckDB store module."""

from spannerload.stores.duckdb.store import DuckDBStore, create_duckdb_store
from spannerload.stores.duckdb.type_mapper import DuckDBTypeMapper

__all__ = [
    "DuckDBStore",
    "DuckDBTypeMapper",
    "create_duckdb_store",
]
