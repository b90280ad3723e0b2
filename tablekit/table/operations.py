"""
Pending table operations and commit options.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

from .constants import WILDCARD_ETAG
from .exceptions import TableKitError
from .item import TableItem


class Execute(str, Enum):
    """Options for executing staged operations on commit."""
    INDIVIDUALLY = "individually"  # each operation on its own
    IN_BATCHES = "in_batches"  # consecutive batchable operations as transactions
    ATOMICALLY = "atomically"  # everything in one transaction, or fail


class ConflictHandling(str, Enum):
    """ETag handling for update, merge and delete-by-item."""
    THROW = "throw"  # respect the item's ETag, if one exists
    OVERWRITE = "overwrite"  # ignore ETag mismatch


class OperationKind(str, Enum):
    INSERT = "insert"
    INSERT_OR_REPLACE = "insert_or_replace"
    REPLACE = "replace"
    MERGE = "merge"
    DELETE = "delete"


def resolve_etag(item: TableItem, conflict_handling: ConflictHandling) -> str:
    """ETag an update, merge or delete-by-item is conditioned on."""
    if conflict_handling is ConflictHandling.OVERWRITE or not item.etag:
        return WILDCARD_ETAG
    return item.etag


@dataclass(frozen=True)
class PendingOperation:
    """
    One staged write.

    ``etag`` is the expected ETag. ``None`` and the wildcard are both
    unconditional; an unconditional delete of a missing row is not an error.
    """
    kind: OperationKind
    table_name: str
    partition_key: str
    row_key: str
    item: Optional[TableItem] = None
    etag: Optional[str] = None

    @property
    def is_delete(self) -> bool:
        return self.kind is OperationKind.DELETE

    @property
    def expects_etag(self) -> bool:
        """True when the operation is conditioned on a concrete ETag."""
        return self.etag is not None and self.etag != WILDCARD_ETAG

    @property
    def key(self) -> Tuple[str, str]:
        return (self.partition_key, self.row_key)

    @classmethod
    def insert(cls, table_name: str, item: TableItem) -> "PendingOperation":
        return cls(OperationKind.INSERT, table_name, item.partition_key, item.row_key, item)

    @classmethod
    def upsert(cls, table_name: str, item: TableItem) -> "PendingOperation":
        return cls(OperationKind.INSERT_OR_REPLACE, table_name, item.partition_key, item.row_key, item)

    @classmethod
    def update(
        cls,
        table_name: str,
        item: TableItem,
        conflict_handling: ConflictHandling = ConflictHandling.THROW
    ) -> "PendingOperation":
        return cls(
            OperationKind.REPLACE, table_name, item.partition_key, item.row_key,
            item, resolve_etag(item, conflict_handling)
        )

    @classmethod
    def merge(
        cls,
        table_name: str,
        item: TableItem,
        conflict_handling: ConflictHandling = ConflictHandling.THROW
    ) -> "PendingOperation":
        return cls(
            OperationKind.MERGE, table_name, item.partition_key, item.row_key,
            item, resolve_etag(item, conflict_handling)
        )

    @classmethod
    def delete(cls, table_name: str, partition_key: str, row_key: str) -> "PendingOperation":
        return cls(OperationKind.DELETE, table_name, partition_key, row_key)

    @classmethod
    def delete_item(
        cls,
        table_name: str,
        item: TableItem,
        conflict_handling: ConflictHandling = ConflictHandling.THROW
    ) -> "PendingOperation":
        return cls(
            OperationKind.DELETE, table_name, item.partition_key, item.row_key,
            item, resolve_etag(item, conflict_handling)
        )

    def describe(self) -> str:
        return f"{self.kind.value} {self.table_name}({self.partition_key!r}, {self.row_key!r})"


@dataclass(frozen=True)
class OperationResult:
    """Outcome of one operation executed outside a transaction."""
    operation: PendingOperation
    error: Optional[TableKitError] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None
