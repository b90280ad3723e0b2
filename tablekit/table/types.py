"""
EDM (Entity Data Model) type system for table rows.

Defines the closed set of primitive wire types a property can carry, the
typed property value, and the stored row shape shared by every backend.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Annotated, Any, Mapping, Optional


class EdmType(Enum):
    """
    Entity Data Model primitive types.

    Represents the complete set of property types supported by the table
    service.
    """
    STRING = "Edm.String"
    INT32 = "Edm.Int32"
    INT64 = "Edm.Int64"
    DOUBLE = "Edm.Double"
    BOOLEAN = "Edm.Boolean"
    DATETIME = "Edm.DateTime"
    GUID = "Edm.Guid"
    BINARY = "Edm.Binary"


# Declares an int field stored as Edm.Int64 instead of Edm.Int32.
Int64 = Annotated[int, EdmType.INT64]


@dataclass(frozen=True)
class Property:
    """
    Value with its EDM type.

    ``value`` is ``None`` for an explicit null; ``nullable`` records whether
    the declaring field accepted null.
    """
    edm_type: EdmType
    value: Any
    nullable: bool = False

    @property
    def is_null(self) -> bool:
        return self.value is None

    def __repr__(self) -> str:
        return f"Property({self.value!r}, {self.edm_type.value})"


def _freeze(properties: Mapping[str, Property]) -> Mapping[str, Property]:
    if isinstance(properties, MappingProxyType):
        return properties
    return MappingProxyType(dict(properties))


@dataclass(frozen=True)
class TableRow:
    """
    A stored row as returned by a backend.

    Rows are immutable values; a mutation produces a new row with a fresh
    ETag.
    """
    partition_key: str
    row_key: str
    properties: Mapping[str, Property] = field(default_factory=dict)
    etag: Optional[str] = None
    timestamp: Optional[datetime] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "properties", _freeze(self.properties))

    @property
    def key(self) -> tuple[str, str]:
        return (self.partition_key, self.row_key)
