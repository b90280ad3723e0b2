"""
Partitioned key-value table storage.

Typed or dynamic records are stored by table name, partition key and row
key, queried by key range, and committed individually, in batches or
atomically.
"""

from .context import TableContext
from .converters import Converter, ConverterRegistry, register_converter, unregister_converter
from .entity import DontSerialize, DynamicEntity, ETag, PartitionKey, RowKey, Timestamp, from_properties, to_properties
from .exceptions import (
    ArgumentError,
    CommitFailedError,
    ConverterAlreadyRegisteredError,
    EntityAlreadyExistsError,
    EntityChangedError,
    EntityDoesNotExistError,
    InvalidEntityError,
    InvalidOperationError,
    KeyFormatError,
    TableKitError,
    TransientServiceError,
    UnsupportedTypeError,
)
from .item import ReservedPropertyBehavior, TableItem
from .memory import MemoryTableContext, StorageAccount
from .operations import ConflictHandling, Execute, OperationKind, PendingOperation
from .provider import InMemoryTableStorageProvider, RemoteTableStorageProvider, TableStorageProvider
from .query import KeyBound, KeyRange, PartialResult, QueryDescriptor, RowPage, flatten, flatten_async
from .remote import RemoteTableContext, RetryPolicy, TableServiceClient
from .types import EdmType, Int64, Property, TableRow

__all__ = [
    "ArgumentError",
    "CommitFailedError",
    "ConflictHandling",
    "Converter",
    "ConverterAlreadyRegisteredError",
    "ConverterRegistry",
    "DontSerialize",
    "DynamicEntity",
    "ETag",
    "EdmType",
    "EntityAlreadyExistsError",
    "EntityChangedError",
    "EntityDoesNotExistError",
    "Execute",
    "InMemoryTableStorageProvider",
    "Int64",
    "InvalidEntityError",
    "InvalidOperationError",
    "KeyBound",
    "KeyFormatError",
    "KeyRange",
    "MemoryTableContext",
    "OperationKind",
    "PartialResult",
    "PartitionKey",
    "PendingOperation",
    "Property",
    "QueryDescriptor",
    "RemoteTableContext",
    "RemoteTableStorageProvider",
    "ReservedPropertyBehavior",
    "RetryPolicy",
    "RowKey",
    "RowPage",
    "StorageAccount",
    "TableContext",
    "TableItem",
    "TableKitError",
    "TableRow",
    "TableServiceClient",
    "TableStorageProvider",
    "Timestamp",
    "TransientServiceError",
    "UnsupportedTypeError",
    "flatten",
    "flatten_async",
    "from_properties",
    "register_converter",
    "to_properties",
    "unregister_converter",
]
