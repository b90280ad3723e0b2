"""
In-memory storage account.

Holds tables of partitions of immutable rows. Locking is scoped to the
smallest structure: the account lock guards the table map, a table lock
guards its partition map, and a partition lock guards its rows.

Transactions copy the rows of the one partition they touch, apply every
operation to the copy, and swap the copy in only if the partition has not
changed meanwhile.
"""

import logging
import threading
import uuid
from datetime import datetime, timezone
from typing import Callable, Dict, List, MutableMapping, Optional, Sequence, Tuple

from ..exceptions import (
    EntityAlreadyExistsError,
    EntityChangedError,
    EntityDoesNotExistError,
    InvalidOperationError,
)
from ..operations import OperationKind, PendingOperation
from ..types import TableRow

logger = logging.getLogger(__name__)

StoredRow = TableRow


def new_etag() -> str:
    return f'W/"{uuid.uuid4()}"'


def _check_etag(row: StoredRow, operation: PendingOperation, table_name: str) -> None:
    if operation.expects_etag and operation.etag != row.etag:
        raise EntityChangedError(table_name, operation.partition_key, operation.row_key)


def apply_operation(
    rows: MutableMapping[str, StoredRow],
    operation: PendingOperation,
    etag_factory: Callable[[], Optional[str]] = new_etag,
    strict: bool = True
) -> None:
    """
    Apply one operation to a partition's row map.

    Args:
        rows: Row key to row mapping, modified in place
        operation: Operation to apply
        etag_factory: Produces the ETag of each row written
        strict: Raise on conflicts; when false, conflicting operations are
            skipped instead

    Raises:
        EntityAlreadyExistsError: Insert on an existing row
        EntityDoesNotExistError: Update/merge on a missing row, or a delete
            with an expected ETag on a missing row
        EntityChangedError: Expected ETag does not match
    """
    table_name = operation.table_name
    row_key = operation.row_key
    existing = rows.get(row_key)
    kind = operation.kind

    try:
        if kind is OperationKind.DELETE:
            if existing is None:
                if operation.expects_etag:
                    raise EntityDoesNotExistError(table_name, operation.partition_key, row_key)
                return
            _check_etag(existing, operation, table_name)
            del rows[row_key]
            return

        if kind is OperationKind.INSERT and existing is not None:
            raise EntityAlreadyExistsError(table_name, operation.partition_key, row_key)

        if kind in (OperationKind.REPLACE, OperationKind.MERGE):
            if existing is None:
                raise EntityDoesNotExistError(table_name, operation.partition_key, row_key)
            _check_etag(existing, operation, table_name)

        properties = dict(operation.item.properties)
        if kind is OperationKind.MERGE:
            properties = {**existing.properties, **properties}

        rows[row_key] = StoredRow(
            partition_key=operation.partition_key,
            row_key=row_key,
            properties=properties,
            etag=etag_factory(),
            timestamp=datetime.now(timezone.utc),
        )
    except (EntityAlreadyExistsError, EntityDoesNotExistError, EntityChangedError):
        if strict:
            raise


class Partition:
    """Rows of one partition key, with a version bumped on every change."""

    def __init__(self, partition_key: str):
        self.partition_key = partition_key
        self._rows: Dict[str, StoredRow] = {}
        self._version = 0
        self._lock = threading.Lock()

    def get(self, row_key: str) -> Optional[StoredRow]:
        with self._lock:
            return self._rows.get(row_key)

    def snapshot(self) -> Tuple[Dict[str, StoredRow], int]:
        """Copy of the row map and the version it was taken at."""
        with self._lock:
            return dict(self._rows), self._version

    def apply(self, operation: PendingOperation) -> None:
        with self._lock:
            apply_operation(self._rows, operation)
            self._version += 1

    def swap(self, rows: Dict[str, StoredRow], expected_version: int) -> bool:
        """Replace the row map if nothing changed since ``expected_version``."""
        with self._lock:
            if self._version != expected_version:
                return False
            self._rows = rows
            self._version += 1
            return True

    def __len__(self) -> int:
        with self._lock:
            return len(self._rows)


class MemoryTable:
    """Partitions of one table."""

    def __init__(self, table_name: str):
        self.table_name = table_name
        self._partitions: Dict[str, Partition] = {}
        self._lock = threading.Lock()

    def get_partition(self, partition_key: str) -> Partition:
        with self._lock:
            partition = self._partitions.get(partition_key)
            if partition is None:
                partition = Partition(partition_key)
                self._partitions[partition_key] = partition
            return partition

    def find_partition(self, partition_key: str) -> Optional[Partition]:
        with self._lock:
            return self._partitions.get(partition_key)

    def partitions(self) -> List[Partition]:
        with self._lock:
            return list(self._partitions.values())


class StorageAccount:
    """
    Process-local table storage shared by any number of contexts.

    Construct one at the application's composition root and pass it to each
    ``MemoryTableContext`` that should share data.
    """

    def __init__(self):
        self._tables: Dict[str, MemoryTable] = {}
        self._lock = threading.Lock()

    def get_table(self, table_name: str) -> MemoryTable:
        with self._lock:
            table = self._tables.get(table_name)
            if table is None:
                table = MemoryTable(table_name)
                self._tables[table_name] = table
                logger.debug(f"Created in-memory table '{table_name}'")
            return table

    def find_table(self, table_name: str) -> Optional[MemoryTable]:
        with self._lock:
            return self._tables.get(table_name)

    def table_names(self) -> List[str]:
        with self._lock:
            return sorted(self._tables)

    def clear(self) -> None:
        """Remove all tables and rows."""
        with self._lock:
            self._tables.clear()
        logger.info("Cleared in-memory storage account")

    # ========== Reads ==========

    def get_row(self, table_name: str, partition_key: str, row_key: str) -> Optional[StoredRow]:
        table = self.find_table(table_name)
        if table is None:
            return None
        partition = table.find_partition(partition_key)
        if partition is None:
            return None
        return partition.get(row_key)

    def partition_rows(self, table_name: str) -> Dict[str, Dict[str, StoredRow]]:
        """Per-partition snapshot of every row in a table."""
        table = self.find_table(table_name)
        if table is None:
            return {}
        return {p.partition_key: p.snapshot()[0] for p in table.partitions()}

    # ========== Writes ==========

    def apply(self, operation: PendingOperation) -> None:
        """Apply one operation under its partition lock."""
        self.get_table(operation.table_name).get_partition(operation.partition_key).apply(operation)

    def apply_atomic(self, operations: Sequence[PendingOperation]) -> None:
        """
        Apply operations on one partition as a single transaction.

        Raises:
            InvalidOperationError: If the operations span tables or partitions
            EntityAlreadyExistsError, EntityDoesNotExistError, EntityChangedError:
                The first failing operation; nothing is applied
        """
        if not operations:
            return
        targets = {(op.table_name, op.partition_key) for op in operations}
        if len(targets) > 1:
            raise InvalidOperationError("A transaction must target exactly one table and partition")

        table_name, partition_key = targets.pop()
        partition = self.get_table(table_name).get_partition(partition_key)

        attempt = 0
        while True:
            attempt += 1
            rows, version = partition.snapshot()
            for operation in operations:
                apply_operation(rows, operation)
            if partition.swap(rows, version):
                logger.debug(
                    f"Committed transaction of {len(operations)} operations on "
                    f"{table_name}({partition_key!r}) after {attempt} attempt(s)"
                )
                return
