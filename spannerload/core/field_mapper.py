"""Conversion of single field values into store-native values.

Only lossless conversions are performed: numeric widening is allowed,
narrowing is rejected, strings and bytes pass through untouched.
"""

import math
import numbers
import struct
from collections.abc import Mapping
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Callable, Optional

from spannerload.core.exceptions import (
    MissingRequiredFieldError,
    NullNotAllowedError,
    TypeMismatchError,
)
from spannerload.core.schema import FieldType, SchemaField

INT32_MIN = -(2**31)
INT32_MAX = 2**31 - 1
INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1


class FieldMapper:
    """Maps raw record values to native values for a declared field type."""

    def __init__(self) -> None:
        self._handlers: dict[FieldType, Callable[[SchemaField, Any, str], Any]] = {
            FieldType.BOOL: self._map_bool,
            FieldType.INT32: self._map_int32,
            FieldType.INT64: self._map_int64,
            FieldType.FLOAT: self._map_float,
            FieldType.DOUBLE: self._map_double,
            FieldType.NUMERIC: self._map_numeric,
            FieldType.STRING: self._map_string,
            FieldType.BYTES: self._map_bytes,
            FieldType.TIMESTAMP: self._map_timestamp,
            FieldType.DATE: self._map_date,
            FieldType.ARRAY: self._map_array,
            FieldType.RECORD: self._map_record,
        }

    def map_value(self, field: SchemaField, value: Any, path: Optional[str] = None) -> Any:
        """Convert one value to the native representation of ``field``.

        Args:
            field: Field definition (type and nullability)
            value: Raw value taken from the record
            path: Dotted path used in error messages; defaults to the field name

        Returns:
            Native value suitable for a write operation

        Raises:
            NullNotAllowedError: If value is None and the field is not nullable
            TypeMismatchError: If no lossless conversion exists
            MissingRequiredFieldError: If a nested RECORD value lacks a required key
        """
        path = path or field.name
        if value is None:
            if not field.nullable:
                raise NullNotAllowedError(f"Field '{path}' is not nullable", field=path)
            return None
        return self._handlers[field.type](field, value, path)

    # ========== Scalars ==========

    def _map_bool(self, field: SchemaField, value: Any, path: str) -> bool:
        if isinstance(value, bool):
            return value
        raise _mismatch(field, value, path)

    def _map_int32(self, field: SchemaField, value: Any, path: str) -> int:
        result = self._require_integer(field, value, path)
        if not INT32_MIN <= result <= INT32_MAX:
            raise _mismatch(field, value, path, "value out of INT32 range")
        return result

    def _map_int64(self, field: SchemaField, value: Any, path: str) -> int:
        result = self._require_integer(field, value, path)
        if not INT64_MIN <= result <= INT64_MAX:
            raise _mismatch(field, value, path, "value out of INT64 range")
        return result

    def _require_integer(self, field: SchemaField, value: Any, path: str) -> int:
        if isinstance(value, bool) or not isinstance(value, numbers.Integral):
            raise _mismatch(field, value, path)
        return int(value)

    def _map_float(self, field: SchemaField, value: Any, path: str) -> float:
        result = self._map_double(field, value, path)
        if not _fits_float32(result):
            raise _mismatch(field, value, path, "value not representable as FLOAT")
        return result

    def _map_double(self, field: SchemaField, value: Any, path: str) -> float:
        if isinstance(value, bool):
            raise _mismatch(field, value, path)
        if isinstance(value, numbers.Integral):
            try:
                result = float(value)
            except OverflowError:
                raise _mismatch(field, value, path, "integer too large") from None
            if int(result) != int(value):
                raise _mismatch(field, value, path, "integer not exactly representable")
            return result
        if isinstance(value, numbers.Real):
            try:
                result = float(value)
            except OverflowError:
                raise _mismatch(field, value, path, "value too large") from None
            if not math.isnan(result) and result != value:
                raise _mismatch(field, value, path, "value not exactly representable")
            return result
        raise _mismatch(field, value, path)

    def _map_numeric(self, field: SchemaField, value: Any, path: str) -> Decimal:
        if isinstance(value, Decimal):
            if not value.is_finite():
                raise _mismatch(field, value, path, "NUMERIC must be finite")
            return value
        if isinstance(value, numbers.Integral) and not isinstance(value, bool):
            return Decimal(int(value))
        raise _mismatch(field, value, path)

    def _map_string(self, field: SchemaField, value: Any, path: str) -> str:
        if isinstance(value, str):
            try:
                value.encode("utf-8")
            except UnicodeEncodeError:
                raise _mismatch(field, value, path, "string is not valid UTF-8") from None
            return value
        raise _mismatch(field, value, path)

    def _map_bytes(self, field: SchemaField, value: Any, path: str) -> bytes:
        if isinstance(value, bytes):
            return value
        if isinstance(value, (bytearray, memoryview)):
            return bytes(value)
        raise _mismatch(field, value, path)

    def _map_timestamp(self, field: SchemaField, value: Any, path: str) -> datetime:
        if not isinstance(value, datetime):
            raise _mismatch(field, value, path)
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def _map_date(self, field: SchemaField, value: Any, path: str) -> date:
        # datetime is a date subclass; dropping the time part is narrowing
        if isinstance(value, date) and not isinstance(value, datetime):
            return value
        raise _mismatch(field, value, path)

    # ========== Nested ==========

    def _map_array(self, field: SchemaField, value: Any, path: str) -> list[Any]:
        if not isinstance(value, (list, tuple)):
            raise _mismatch(field, value, path)
        element = field.element
        return [
            self.map_value(element, item, f"{path}[{index}]")
            for index, item in enumerate(value)
        ]

    def _map_record(self, field: SchemaField, value: Any, path: str) -> dict[str, Any]:
        if not isinstance(value, Mapping):
            raise _mismatch(field, value, path)
        result = {}
        for nested in field.fields:
            nested_path = f"{path}.{nested.name}"
            if nested.name not in value:
                if not nested.nullable:
                    raise MissingRequiredFieldError(
                        f"Required field '{nested_path}' is missing", field=nested_path
                    )
                result[nested.name] = None
                continue
            result[nested.name] = self.map_value(nested, value[nested.name], nested_path)
        return result


def _fits_float32(value: float) -> bool:
    if math.isnan(value) or math.isinf(value):
        return True
    try:
        packed = struct.unpack("f", struct.pack("f", value))[0]
    except OverflowError:
        return False
    return packed == value


def _mismatch(field: SchemaField, value: Any, path: str, detail: str | None = None) -> TypeMismatchError:
    message = f"Field '{path}' expects {field.type_name}, got {type(value).__name__}"
    if detail:
        message = f"{message}: {detail}"
    return TypeMismatchError(message, field=path)


_default_mapper = FieldMapper()


def map_value(field: SchemaField, value: Any) -> Any:
    """Convert ``value`` for ``field`` using a shared FieldMapper."""
    return _default_mapper.map_value(field, value)
