"""
Entity property model.

Converts typed records (pydantic models, dataclasses) and dynamic records
(``DynamicEntity``, ``dict``) to a normalized property bag and back.

Key and ETag fields are designated with ``Annotated`` markers::

    class Customer(BaseModel):
        region: Annotated[str, PartitionKey]
        customer_id: Annotated[str, RowKey]
        etag: Annotated[Optional[str], ETag] = None
        visits: Int64 = 0
        cache: Annotated[Optional[str], DontSerialize] = None
"""

import dataclasses
import functools
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import UnionType
from typing import Annotated, Any, Dict, List, Mapping, Optional, Tuple, Union, get_args, get_origin, get_type_hints

from pydantic import BaseModel

from .constants import ETAG, PARTITION_KEY, ROW_KEY, TIMESTAMP
from .converters import ConverterRegistry, canonical_value, default_registry
from .exceptions import InvalidEntityError, UnsupportedTypeError
from .types import EdmType, Property, TableRow


class FieldRole(Enum):
    """Designation of a record field that maps to a reserved property."""
    PARTITION_KEY = PARTITION_KEY
    ROW_KEY = ROW_KEY
    TIMESTAMP = TIMESTAMP
    ETAG = ETAG


PartitionKey = FieldRole.PARTITION_KEY
RowKey = FieldRole.ROW_KEY
Timestamp = FieldRole.TIMESTAMP
ETag = FieldRole.ETAG


class _DontSerializeMarker:
    def __repr__(self) -> str:
        return "DontSerialize"


DontSerialize = _DontSerializeMarker()

_ROLE_TYPES = {
    FieldRole.PARTITION_KEY: str,
    FieldRole.ROW_KEY: str,
    FieldRole.ETAG: str,
    FieldRole.TIMESTAMP: datetime,
}


class DynamicEntity(dict):
    """Schema-less record with attribute access to its properties."""

    def __getattr__(self, name: str) -> Any:
        try:
            return self[name]
        except KeyError:
            raise AttributeError(name) from None

    def __setattr__(self, name: str, value: Any) -> None:
        self[name] = value

    def __delattr__(self, name: str) -> None:
        try:
            del self[name]
        except KeyError:
            raise AttributeError(name) from None


# ========== Shape Introspection ==========

@dataclass(frozen=True)
class FieldSpec:
    """Declared field of a typed record."""
    name: str
    base_type: Any
    nullable: bool = False
    edm_hint: Optional[EdmType] = None
    role: Optional[FieldRole] = None
    serializable: bool = True
    init: bool = True
    has_default: bool = True


@dataclass(frozen=True)
class RecordShape:
    """Field layout of a typed record class."""
    record_type: type
    fields: Tuple[FieldSpec, ...]
    roles: Mapping[FieldRole, FieldSpec]
    is_pydantic: bool

    def role_field(self, role: FieldRole) -> Optional[FieldSpec]:
        return self.roles.get(role)


def _unwrap(annotation: Any) -> Tuple[Any, bool, List[Any]]:
    """Strip Annotated and Optional wrappers, collecting metadata."""
    markers: List[Any] = []
    nullable = False
    while True:
        origin = get_origin(annotation)
        if origin is Annotated:
            base, *extras = get_args(annotation)
            markers.extend(extras)
            annotation = base
            continue
        if origin is Union or origin is UnionType:
            args = get_args(annotation)
            non_null = [a for a in args if a is not type(None)]
            if len(non_null) == 1 and len(non_null) < len(args):
                nullable = True
                annotation = non_null[0]
                continue
        return annotation, nullable, markers


def is_typed_record_class(target: Any) -> bool:
    return isinstance(target, type) and (
        issubclass(target, BaseModel) or dataclasses.is_dataclass(target)
    )


def is_dynamic_target(target: Any) -> bool:
    return target is None or (isinstance(target, type) and issubclass(target, dict))


@functools.lru_cache(maxsize=None)
def describe_shape(record_type: type) -> RecordShape:
    """
    Inspect a pydantic model or dataclass.

    Raises:
        InvalidEntityError: If a role is designated twice or on a field of
            the wrong type
        UnsupportedTypeError: If the class is neither a pydantic model nor
            a dataclass
    """
    if not is_typed_record_class(record_type):
        raise UnsupportedTypeError(record_type)

    hints = get_type_hints(record_type, include_extras=True)
    is_pydantic = issubclass(record_type, BaseModel)

    declared: List[Tuple[str, bool, bool, bool]] = []  # name, excluded, init, has_default
    if is_pydantic:
        for name, info in record_type.model_fields.items():
            declared.append((name, info.exclude is True, True, not info.is_required()))
    else:
        for f in dataclasses.fields(record_type):
            has_default = (
                f.default is not dataclasses.MISSING
                or f.default_factory is not dataclasses.MISSING
            )
            declared.append((f.name, False, f.init, has_default))

    specs: List[FieldSpec] = []
    roles: Dict[FieldRole, FieldSpec] = {}
    for name, excluded, init, has_default in declared:
        base_type, nullable, markers = _unwrap(hints.get(name, Any))
        field_roles = [m for m in markers if isinstance(m, FieldRole)]
        if len(field_roles) > 1:
            raise InvalidEntityError(
                f"Field '{name}' of {record_type.__name__} has more than one designation"
            )
        role = field_roles[0] if field_roles else None
        edm_hint = next((m for m in markers if isinstance(m, EdmType)), None)
        spec = FieldSpec(
            name=name,
            base_type=base_type,
            nullable=nullable,
            edm_hint=edm_hint,
            role=role,
            serializable=not excluded and not any(m is DontSerialize for m in markers) and init,
            init=init,
            has_default=has_default,
        )
        if role is not None:
            if role in roles:
                raise InvalidEntityError(
                    f"{record_type.__name__} designates more than one {role.value} field: "
                    f"'{roles[role].name}' and '{name}'"
                )
            if base_type is not _ROLE_TYPES[role]:
                raise InvalidEntityError(
                    f"{role.value} field '{name}' of {record_type.__name__} must be of type "
                    f"{_ROLE_TYPES[role].__name__}"
                )
            roles[role] = spec
        specs.append(spec)

    return RecordShape(record_type, tuple(specs), roles, is_pydantic)


# ========== Encoding ==========

@dataclass(frozen=True)
class RecordProperties:
    """Designated keys, ETag and named properties extracted from a record."""
    partition_key: Optional[str] = None
    row_key: Optional[str] = None
    etag: Optional[str] = None
    properties: Dict[str, Property] = field(default_factory=dict)


def encode_value(
    value: Any,
    name: Optional[str] = None,
    registry: Optional[ConverterRegistry] = None
) -> Property:
    """Infer the EDM type of a runtime value and build its property."""
    registry = registry or default_registry
    if isinstance(value, Property):
        return Property(value.edm_type, canonical_value(value.edm_type, value.value), value.nullable)
    if value is None:
        return Property(EdmType.STRING, None, nullable=True)
    converter = registry.for_value(value, name)
    return Property(converter.edm_type, canonical_value(converter.edm_type, converter.to_storage(value)))


def to_properties(record: Any, registry: Optional[ConverterRegistry] = None) -> RecordProperties:
    """
    Extract the property bag from a record.

    Dynamic records contribute every entry as a property, reserved names
    included. Typed records contribute their serializable fields; designated
    fields supply the keys and ETag instead.

    Raises:
        UnsupportedTypeError: If a value or field type cannot be stored
        InvalidEntityError: If a value does not fit its EDM type
    """
    registry = registry or default_registry

    if isinstance(record, Mapping):
        properties: Dict[str, Property] = {}
        for name, value in record.items():
            if not isinstance(name, str):
                raise InvalidEntityError(f"Property names must be strings, got {name!r}")
            properties[name] = encode_value(value, name, registry)
        return RecordProperties(properties=properties)

    shape = describe_shape(type(record))
    properties = {}
    keys: Dict[FieldRole, Any] = {}
    for spec in shape.fields:
        value = getattr(record, spec.name, None)
        if spec.role is not None:
            keys[spec.role] = value
            continue
        if not spec.serializable:
            continue
        converter = registry.for_declared_type(spec.base_type, spec.edm_hint, spec.name)
        stored = None if value is None else canonical_value(
            converter.edm_type, converter.to_storage(value)
        )
        properties[spec.name] = Property(converter.edm_type, stored, spec.nullable)

    return RecordProperties(
        partition_key=keys.get(FieldRole.PARTITION_KEY),
        row_key=keys.get(FieldRole.ROW_KEY),
        etag=keys.get(FieldRole.ETAG),
        properties=properties,
    )


# ========== Decoding ==========

def _decode_dynamic(row: TableRow, target: Any, include_etag: bool, strip_nulls: bool) -> dict:
    result = DynamicEntity() if target is None or target is dict else target()
    result[PARTITION_KEY] = row.partition_key
    result[ROW_KEY] = row.row_key
    result[TIMESTAMP] = row.timestamp
    if include_etag:
        result[ETAG] = row.etag
    for name, prop in row.properties.items():
        if strip_nulls and prop.value is None:
            continue
        result[name] = prop.value
    return result


def from_properties(
    row: TableRow,
    target: Any = None,
    include_etag: bool = True,
    strip_nulls: bool = False,
    registry: Optional[ConverterRegistry] = None
) -> Any:
    """
    Build a record of ``target`` shape from a stored row.

    ``None``, ``dict`` or a ``dict`` subclass produce a dynamic record that
    also carries PartitionKey, RowKey, Timestamp and ETag. Typed targets get
    designated fields filled from the row, declared fields filled from the
    matching properties, and everything else left at its default.
    """
    if is_dynamic_target(target):
        return _decode_dynamic(row, target, include_etag, strip_nulls)

    registry = registry or default_registry
    shape = describe_shape(target)
    values: Dict[str, Any] = {}
    for spec in shape.fields:
        if spec.role is FieldRole.PARTITION_KEY:
            values[spec.name] = row.partition_key
        elif spec.role is FieldRole.ROW_KEY:
            values[spec.name] = row.row_key
        elif spec.role is FieldRole.ETAG:
            values[spec.name] = row.etag
        elif spec.role is FieldRole.TIMESTAMP:
            values[spec.name] = row.timestamp
        elif spec.serializable and spec.name in row.properties:
            stored = row.properties[spec.name].value
            if stored is None:
                values[spec.name] = None
                continue
            converter = registry.for_declared_type(spec.base_type, spec.edm_hint, spec.name)
            try:
                values[spec.name] = converter.from_storage(stored)
            except (TypeError, ValueError) as e:
                raise InvalidEntityError(
                    f"Stored value {stored!r} cannot be assigned to field '{spec.name}': {e}"
                ) from e

    if shape.is_pydantic:
        return target.model_construct(**values)

    kwargs = {}
    for spec in shape.fields:
        if not spec.init:
            continue
        if spec.name in values:
            kwargs[spec.name] = values[spec.name]
        elif not spec.has_default:
            kwargs[spec.name] = None
    return target(**kwargs)
