"""Write operations emitted by the record transformer."""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping

# Fixed per-value overheads used when estimating the serialized size of an
# operation. Sizes follow the Spanner storage model.
_FIXED_SIZES: dict[type, int] = {
    bool: 1,
    int: 8,
    float: 8,
    datetime: 12,
    date: 4,
}
_NULL_SIZE = 1


class OperationKind(str, Enum):
    """Kind of write applied to the target table."""

    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"
    INSERT_OR_UPDATE = "insert_or_update"
    REPLACE = "replace"


@dataclass(frozen=True)
class WriteOperation:
    """A single insert/update/delete targeted at one table.

    Columns hold store-native values produced by the field mapper. The
    mapping is wrapped read-only so an operation cannot change once it has
    been handed to a batch.
    """

    table: str
    kind: OperationKind
    columns: Mapping[str, Any]
    key_columns: tuple[str, ...] = ()
    _size: int = field(default=0, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "columns", MappingProxyType(dict(self.columns)))
        object.__setattr__(self, "key_columns", tuple(self.key_columns))
        object.__setattr__(self, "_size", self._compute_size())

    @property
    def key(self) -> tuple[Any, ...]:
        """Return the primary-key values in key column order."""
        return tuple(self.columns.get(name) for name in self.key_columns)

    def estimated_size(self) -> int:
        """Return the estimated serialized size of this operation in bytes."""
        return self._size

    def _compute_size(self) -> int:
        size = len(self.table.encode("utf-8", "surrogatepass"))
        for name, value in self.columns.items():
            size += len(name.encode("utf-8", "surrogatepass")) + estimate_value_size(value)
        return size


def estimate_value_size(value: Any) -> int:
    """Estimate the serialized size of one native value in bytes."""
    if value is None:
        return _NULL_SIZE
    if isinstance(value, str):
        return len(value.encode("utf-8", "surrogatepass"))
    if isinstance(value, bytes):
        return len(value)
    if isinstance(value, Decimal):
        return len(str(value))
    if isinstance(value, (list, tuple)):
        return 8 + sum(estimate_value_size(item) for item in value)
    if isinstance(value, Mapping):
        return 8 + sum(
            len(str(k).encode("utf-8", "surrogatepass")) + estimate_value_size(v)
            for k, v in value.items()
        )
    for value_type, size in _FIXED_SIZES.items():
        if isinstance(value, value_type):
            return size
    return len(repr(value).encode("utf-8", "surrogatepass"))
