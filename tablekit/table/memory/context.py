"""
In-memory table context.

Each ``MemoryTableContext`` is a session over a shared ``StorageAccount``.
Its reads see committed rows with its own staged operations projected on
top; other sessions see committed rows only.
"""

import logging
from typing import Any, Dict, Optional, Sequence, Union

from ..context import TableContext
from ..operations import Execute, PendingOperation
from ..query import QueryDescriptor, RowPage
from ..types import TableRow
from .account import StorageAccount, StoredRow, apply_operation
from .query import evaluate

logger = logging.getLogger(__name__)


def _no_etag() -> Optional[str]:
    return None


class MemoryTableContext(TableContext):
    """
    Table context backed by a ``StorageAccount``.

    Staged rows that are visible to this session before commit carry no
    ETag.
    """

    def __init__(
        self,
        account: StorageAccount,
        default_execute: Union[Execute, str] = Execute.INDIVIDUALLY
    ):
        super().__init__(default_execute)
        self._account = account

    @property
    def account(self) -> StorageAccount:
        return self._account

    def reset_tables(self) -> None:
        """Clear the underlying account."""
        self._account.clear()

    # ========== Session Overlay ==========

    def _project(
        self,
        table_name: str,
        partitions: Dict[str, Dict[str, StoredRow]],
        descriptor: Optional[QueryDescriptor] = None
    ) -> None:
        """Apply this session's staged operations to copied partition maps."""
        for operation in self.pending_operations:
            if operation.table_name != table_name:
                continue
            if descriptor is not None and not descriptor.partition_range.contains(operation.partition_key):
                continue
            rows = partitions.setdefault(operation.partition_key, {})
            apply_operation(rows, operation, etag_factory=_no_etag, strict=False)

    # ========== Backend ==========

    def get_row(self, table_name: str, partition_key: str, row_key: str) -> Optional[TableRow]:
        committed = self._account.get_row(table_name, partition_key, row_key)
        rows = {row_key: committed} if committed is not None else {}
        for operation in self.pending_operations:
            if operation.table_name == table_name and operation.key == (partition_key, row_key):
                apply_operation(rows, operation, etag_factory=_no_etag, strict=False)
        return rows.get(row_key)

    def fetch_page(
        self,
        table_name: str,
        descriptor: QueryDescriptor,
        continuation: Any = None
    ) -> RowPage:
        """All matches in one page; ``continuation`` is never set."""
        partitions = self._account.partition_rows(table_name)
        self._project(table_name, partitions, descriptor)
        rows = [row for partition in partitions.values() for row in partition.values()]
        return RowPage(evaluate(descriptor, rows))

    def execute_operation(self, operation: PendingOperation) -> None:
        self._account.apply(operation)

    def execute_atomic(self, operations: Sequence[PendingOperation]) -> None:
        self._account.apply_atomic(operations)
