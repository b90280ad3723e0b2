"""
Table item: the validated, key-bearing unit of work staged on a context.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional

from .constants import ETAG, PARTITION_KEY, RESERVED_PROPERTY_NAMES, ROW_KEY
from .converters import ConverterRegistry
from .entity import to_properties
from .exceptions import ArgumentError, InvalidEntityError
from .types import Property


class ReservedPropertyBehavior(str, Enum):
    """How properties literally named PartitionKey/RowKey/Timestamp/ETag are treated."""
    THROW = "throw"
    IGNORE = "ignore"


def _merge_key(key_name: str, candidate: Optional[str], explicit: Optional[str]) -> str:
    if candidate is not None and explicit is not None and candidate != explicit:
        raise ArgumentError(
            f"{key_name} {explicit!r} does not match the record's {key_name} {candidate!r}"
        )
    value = explicit if explicit is not None else candidate
    if value is None:
        raise ArgumentError(f"No {key_name} was supplied and the record does not define one")
    return value


@dataclass(frozen=True)
class TableItem:
    """
    Immutable row payload with its keys.

    Use ``TableItem.create`` to build one from a record.
    """
    partition_key: str
    row_key: str
    properties: Mapping[str, Property] = field(default_factory=dict)
    etag: Optional[str] = None
    table_name: Optional[str] = None

    def __post_init__(self) -> None:
        if not isinstance(self.properties, MappingProxyType):
            object.__setattr__(self, "properties", MappingProxyType(dict(self.properties)))

    @classmethod
    def create(
        cls,
        record: Any,
        partition_key: Optional[str] = None,
        row_key: Optional[str] = None,
        reserved_property_behavior: ReservedPropertyBehavior = ReservedPropertyBehavior.THROW,
        table_name: Optional[str] = None,
        registry: Optional[ConverterRegistry] = None
    ) -> "TableItem":
        """
        Build an item from a typed or dynamic record.

        Keys come from the record's designated fields, from the explicit
        arguments, or (with ``IGNORE``) from properties named PartitionKey
        and RowKey.

        Raises:
            InvalidEntityError: If the record carries reserved property names
                under ``THROW``, or a reserved key property is not a string
            ArgumentError: If a key is missing, or two sources disagree
        """
        extracted = to_properties(record, registry)
        properties = dict(extracted.properties)
        record_pk = extracted.partition_key
        record_rk = extracted.row_key
        etag = extracted.etag

        reserved = [name for name in properties if name in RESERVED_PROPERTY_NAMES]
        if reserved:
            if reserved_property_behavior is ReservedPropertyBehavior.THROW:
                raise InvalidEntityError(
                    f"Record defines reserved property names: {', '.join(reserved)}"
                )
            for name in reserved:
                value = properties.pop(name).value
                if name == PARTITION_KEY:
                    record_pk = _merge_key(PARTITION_KEY, record_pk, _require_str(name, value))
                elif name == ROW_KEY:
                    record_rk = _merge_key(ROW_KEY, record_rk, _require_str(name, value))
                elif name == ETAG and etag is None and value is not None:
                    etag = str(value)

        return cls(
            partition_key=_merge_key(PARTITION_KEY, record_pk, partition_key),
            row_key=_merge_key(ROW_KEY, record_rk, row_key),
            properties=properties,
            etag=etag,
            table_name=table_name,
        )

    def with_etag(self, etag: Optional[str]) -> "TableItem":
        return replace(self, etag=etag)

    def with_table_name(self, table_name: str) -> "TableItem":
        return replace(self, table_name=table_name)


def _require_str(name: str, value: Any) -> str:
    if not isinstance(value, str):
        raise InvalidEntityError(f"Reserved property '{name}' must be a string, got {type(value).__name__}")
    return value
