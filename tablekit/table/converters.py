"""
Python type to EDM type converters.

Each supported Python type maps to a ``Converter`` that turns a field value
into its stored form and back. Custom types can be added with
``register_converter``.
"""

import threading
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Optional, Tuple

from .constants import INT32_MAX, INT32_MIN, INT64_MAX, INT64_MIN
from .exceptions import ConverterAlreadyRegisteredError, InvalidEntityError, UnsupportedTypeError
from .types import EdmType


@dataclass(frozen=True)
class Converter:
    """Converts between a Python value and its stored EDM value."""
    edm_type: EdmType
    to_storage: Callable[[Any], Any]
    from_storage: Callable[[Any], Any]


# ========== Canonical Values ==========

def normalize_datetime(value: datetime) -> datetime:
    """Return the same instant in UTC. Naive values are taken as local time."""
    return value.astimezone(timezone.utc)


def _to_int32(value: Any) -> int:
    number = int(value)
    if not INT32_MIN <= number <= INT32_MAX:
        raise InvalidEntityError(f"Value {number} is out of range for Edm.Int32")
    return number


def _to_int64(value: Any) -> int:
    number = int(value)
    if not INT64_MIN <= number <= INT64_MAX:
        raise InvalidEntityError(f"Value {number} is out of range for Edm.Int64")
    return number


def _to_uuid(value: Any) -> uuid.UUID:
    if isinstance(value, uuid.UUID):
        return value
    return uuid.UUID(str(value))


def _to_bytes(value: Any) -> bytes:
    return bytes(value)


def _to_datetime(value: Any) -> datetime:
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    return normalize_datetime(value)


_CANONICALIZERS: Dict[EdmType, Callable[[Any], Any]] = {
    EdmType.STRING: str,
    EdmType.INT32: _to_int32,
    EdmType.INT64: _to_int64,
    EdmType.DOUBLE: float,
    EdmType.BOOLEAN: bool,
    EdmType.BINARY: _to_bytes,
    EdmType.GUID: _to_uuid,
    EdmType.DATETIME: _to_datetime,
}


def canonical_value(edm_type: EdmType, value: Any) -> Any:
    """
    Coerce a value to the canonical Python representation of its EDM type.

    Raises:
        InvalidEntityError: If the value does not fit the type
    """
    if value is None:
        return None
    try:
        return _CANONICALIZERS[edm_type](value)
    except InvalidEntityError:
        raise
    except (TypeError, ValueError) as e:
        raise InvalidEntityError(f"Value {value!r} is not a valid {edm_type.value}: {e}") from e


# ========== Built-in Converters ==========

STRING_CONVERTER = Converter(EdmType.STRING, str, str)
INT32_CONVERTER = Converter(EdmType.INT32, _to_int32, int)
INT64_CONVERTER = Converter(EdmType.INT64, _to_int64, int)
DOUBLE_CONVERTER = Converter(EdmType.DOUBLE, float, float)
BOOLEAN_CONVERTER = Converter(EdmType.BOOLEAN, bool, bool)
BINARY_CONVERTER = Converter(EdmType.BINARY, _to_bytes, bytes)
GUID_CONVERTER = Converter(EdmType.GUID, _to_uuid, _to_uuid)
DATETIME_CONVERTER = Converter(EdmType.DATETIME, normalize_datetime, _to_datetime)

_DEFAULT_CONVERTERS: Dict[type, Converter] = {
    str: STRING_CONVERTER,
    int: INT32_CONVERTER,
    float: DOUBLE_CONVERTER,
    bool: BOOLEAN_CONVERTER,
    bytes: BINARY_CONVERTER,
    uuid.UUID: GUID_CONVERTER,
    datetime: DATETIME_CONVERTER,
}

# Declared type plus an explicit EdmType annotation
_HINTED_CONVERTERS: Dict[Tuple[type, EdmType], Converter] = {
    (int, EdmType.INT64): INT64_CONVERTER,
    (int, EdmType.INT32): INT32_CONVERTER,
}


def is_int_enum(python_type: Any) -> bool:
    """Check if a type is an Enum whose members all have integer values."""
    if not (isinstance(python_type, type) and issubclass(python_type, Enum)):
        return False
    members = list(python_type)
    return bool(members) and all(
        isinstance(m.value, int) and not isinstance(m.value, bool) for m in members
    )


def enum_from_value(enum_type: type, value: Any) -> Enum:
    """
    Decode a stored integer into an enum member.

    An integer with no matching member decodes to the first declared member.
    """
    try:
        return enum_type(int(value))
    except ValueError:
        return next(iter(enum_type))


def enum_converter(enum_type: type) -> Converter:
    return Converter(
        EdmType.INT32,
        lambda member: _to_int32(member.value),
        lambda stored: enum_from_value(enum_type, stored),
    )


class ConverterRegistry:
    """
    Registry of Python type converters.

    Lookups by declared type are exact; lookups by runtime value walk the
    value's MRO so subclasses of a registered type are supported.
    """

    def __init__(self, include_defaults: bool = True):
        self._converters: Dict[type, Converter] = dict(_DEFAULT_CONVERTERS) if include_defaults else {}
        self._lock = threading.Lock()

    def register(self, python_type: type, converter: Converter) -> None:
        """
        Register a converter for a Python type.

        Raises:
            ConverterAlreadyRegisteredError: If the type already has a converter
        """
        with self._lock:
            if python_type in self._converters:
                raise ConverterAlreadyRegisteredError(python_type)
            self._converters[python_type] = converter

    def unregister(self, python_type: type) -> None:
        with self._lock:
            self._converters.pop(python_type, None)

    def is_registered(self, python_type: type) -> bool:
        return python_type in self._converters

    def for_declared_type(
        self,
        python_type: Any,
        edm_hint: Optional[EdmType] = None,
        property_name: Optional[str] = None
    ) -> Converter:
        """
        Find the converter for a declared field type.

        Raises:
            UnsupportedTypeError: If no converter handles the type
        """
        if edm_hint is not None:
            hinted = _HINTED_CONVERTERS.get((python_type, edm_hint))
            if hinted is None:
                raise UnsupportedTypeError(python_type, property_name)
            return hinted

        if converter := self._converters.get(python_type):
            return converter

        if is_int_enum(python_type):
            return enum_converter(python_type)

        raise UnsupportedTypeError(python_type, property_name)

    def for_value(self, value: Any, property_name: Optional[str] = None) -> Converter:
        """
        Infer the converter for a runtime value.

        Booleans are checked before integers, and integers that do not fit
        in 32 bits are stored as Edm.Int64.

        Raises:
            UnsupportedTypeError: If no converter handles the value's type
        """
        if isinstance(value, bool):
            return BOOLEAN_CONVERTER
        if isinstance(value, Enum):
            if is_int_enum(type(value)):
                return enum_converter(type(value))
            raise UnsupportedTypeError(type(value), property_name)
        if type(value) is int:
            if INT32_MIN <= value <= INT32_MAX:
                return INT32_CONVERTER
            return INT64_CONVERTER

        for klass in type(value).__mro__:
            if converter := self._converters.get(klass):
                return converter

        raise UnsupportedTypeError(type(value), property_name)


default_registry = ConverterRegistry()


def register_converter(python_type: type, converter: Converter) -> None:
    """Register a converter on the default registry."""
    default_registry.register(python_type, converter)


def unregister_converter(python_type: type) -> None:
    """Remove a converter from the default registry."""
    default_registry.unregister(python_type)
