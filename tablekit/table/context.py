"""
Table context: staging, reads and commit.

A ``TableContext`` queues pending operations and, on commit, groups them
according to the execution mode and hands each group to its backend.
Backends implement row lookup, paged queries, single-operation execution and
all-or-nothing transactions.
"""

import asyncio
import logging
import threading
from abc import ABC, abstractmethod
from typing import Any, Iterator, List, Optional, Sequence, Tuple, Union

from tablekit.core.logging_config import correlation_scope, log_with_context

from .batching import group_in_batches, validate_atomic, validate_operation_keys
from .entity import from_properties, is_dynamic_target
from .exceptions import CommitFailedError, EntityDoesNotExistError, TableKitError
from .item import TableItem
from .operations import ConflictHandling, Execute, OperationResult, PendingOperation
from .query import Filterable, KeyRange, QueryDescriptor, RowPage
from .types import TableRow

logger = logging.getLogger(__name__)


class TableContext(ABC):
    """
    Base class for storage backends.

    Staging never fails; keys and transaction legality are checked when
    ``commit`` runs, before anything is sent to the backend. The pending
    queue is cleared by every commit attempt, successful or not.
    """

    def __init__(self, default_execute: Union[Execute, str] = Execute.INDIVIDUALLY):
        self._pending: List[PendingOperation] = []
        self._pending_lock = threading.Lock()
        self._default_execute = Execute(default_execute)

    # ========== Backend ==========

    @abstractmethod
    def get_row(self, table_name: str, partition_key: str, row_key: str) -> Optional[TableRow]:
        """Return the row, or None if it does not exist."""

    @abstractmethod
    def fetch_page(
        self,
        table_name: str,
        descriptor: QueryDescriptor,
        continuation: Any = None
    ) -> RowPage:
        """Return one page of rows matching the descriptor, in key order."""

    @abstractmethod
    def execute_operation(self, operation: PendingOperation) -> None:
        """Apply one operation on its own."""

    @abstractmethod
    def execute_atomic(self, operations: Sequence[PendingOperation]) -> None:
        """Apply operations as one all-or-nothing transaction."""

    def execute_batch(self, operations: Sequence[PendingOperation]) -> List[OperationResult]:
        """
        Apply operations one at a time, continuing after failures.

        Returns:
            One result per operation, in order
        """
        results = []
        for operation in operations:
            try:
                self.execute_operation(operation)
                results.append(OperationResult(operation))
            except TableKitError as e:
                log_with_context(
                    logger, logging.WARNING,
                    f"Operation failed: {operation.describe()}: {e.error_code}",
                    table_name=operation.table_name,
                    partition_key=operation.partition_key,
                    row_key=operation.row_key,
                    error_code=e.error_code,
                )
                results.append(OperationResult(operation, e))
        return results

    # ========== Staging ==========

    def stage(self, operation: PendingOperation) -> None:
        with self._pending_lock:
            self._pending.append(operation)

    @property
    def pending_operations(self) -> Tuple[PendingOperation, ...]:
        with self._pending_lock:
            return tuple(self._pending)

    def _take_pending(self) -> List[PendingOperation]:
        with self._pending_lock:
            operations, self._pending = self._pending, []
        return operations

    def add_new_item(self, table_name: str, item: TableItem) -> None:
        self.stage(PendingOperation.insert(table_name, item))

    def upsert(self, table_name: str, item: TableItem) -> None:
        self.stage(PendingOperation.upsert(table_name, item))

    def update(
        self,
        table_name: str,
        item: TableItem,
        conflict_handling: ConflictHandling = ConflictHandling.THROW
    ) -> None:
        self.stage(PendingOperation.update(table_name, item, conflict_handling))

    def merge(
        self,
        table_name: str,
        item: TableItem,
        conflict_handling: ConflictHandling = ConflictHandling.THROW
    ) -> None:
        self.stage(PendingOperation.merge(table_name, item, conflict_handling))

    def delete_item(self, table_name: str, partition_key: str, row_key: str) -> None:
        self.stage(PendingOperation.delete(table_name, partition_key, row_key))

    def delete_entity(
        self,
        table_name: str,
        item: TableItem,
        conflict_handling: ConflictHandling = ConflictHandling.THROW
    ) -> None:
        self.stage(PendingOperation.delete_item(table_name, item, conflict_handling))

    def delete_collection(self, table_name: str, partition_key: str) -> None:
        """Stage a delete for every row currently visible in the partition."""
        descriptor = QueryDescriptor(partition_range=KeyRange.exactly(partition_key))
        for row in self.iter_rows(table_name, descriptor):
            self.delete_item(table_name, row.partition_key, row.row_key)

    # ========== Reads ==========

    def iter_rows(self, table_name: str, descriptor: QueryDescriptor) -> Iterator[TableRow]:
        """Yield raw rows across all pages."""
        continuation = None
        while True:
            page = self.fetch_page(table_name, descriptor, continuation)
            yield from page.rows
            continuation = page.continuation
            if continuation is None:
                return

    def get_item(
        self,
        table_name: str,
        partition_key: str,
        row_key: str,
        target: Any = None,
        include_etag: bool = True
    ) -> Any:
        """
        Read one row and decode it into ``target``.

        Raises:
            EntityDoesNotExistError: If the row does not exist
        """
        row = self.get_row(table_name, partition_key, row_key)
        if row is None:
            raise EntityDoesNotExistError(table_name, partition_key, row_key)
        return from_properties(row, target, include_etag=include_etag, strip_nulls=is_dynamic_target(target))

    async def get_item_async(
        self,
        table_name: str,
        partition_key: str,
        row_key: str,
        target: Any = None,
        include_etag: bool = True
    ) -> Any:
        return await asyncio.to_thread(self.get_item, table_name, partition_key, row_key, target, include_etag)

    def create_query(self, table_name: str, target: Any = None, include_etag: bool = True) -> Filterable:
        return Filterable(self, table_name, target, include_etag=include_etag)

    # ========== Commit ==========

    def commit(self, mode: Optional[Union[Execute, str]] = None) -> None:
        """
        Execute and clear all staged operations.

        Raises:
            KeyFormatError: If any staged key is malformed; nothing executes
            InvalidOperationError: If ``ATOMICALLY`` is requested for an
                illegal transaction; nothing executes
            TableKitError: The failure of the single failing operation or run
            CommitFailedError: If several operations or runs failed
        """
        self._commit_operations(self._take_pending(), mode)

    async def commit_async(self, mode: Optional[Union[Execute, str]] = None) -> None:
        """Same as ``commit``, run in a worker thread."""
        operations = self._take_pending()
        await asyncio.to_thread(self._commit_operations, operations, mode)

    def _commit_operations(
        self,
        operations: List[PendingOperation],
        mode: Optional[Union[Execute, str]]
    ) -> None:
        mode = Execute(mode) if mode is not None else self._default_execute
        if not operations:
            return

        with correlation_scope():
            validate_operation_keys(operations)

            if mode is Execute.ATOMICALLY:
                validate_atomic(operations)
                logger.info(f"Committing {len(operations)} operations atomically")
                self.execute_atomic(operations)
                return

            if mode is Execute.IN_BATCHES:
                failures = self._commit_in_batches(operations)
            else:
                logger.info(f"Committing {len(operations)} operations individually")
                failures = [r.error for r in self.execute_batch(operations) if not r.succeeded]

            self._raise_failures(failures)

    def _commit_in_batches(self, operations: List[PendingOperation]) -> List[TableKitError]:
        runs = group_in_batches(operations)
        transactions = sum(1 for run in runs if len(run) > 1)
        logger.info(
            f"Committing {len(operations)} operations in {len(runs)} groups "
            f"({transactions} transactions)"
        )

        failures: List[TableKitError] = []
        for run in runs:
            if len(run) == 1:
                failures.extend(r.error for r in self.execute_batch(run) if not r.succeeded)
                continue
            try:
                self.execute_atomic(run)
            except TableKitError as e:
                log_with_context(
                    logger, logging.WARNING,
                    f"Transaction of {len(run)} operations rolled back: {e.error_code}",
                    table_name=run[0].table_name,
                    partition_key=run[0].partition_key,
                    error_code=e.error_code,
                )
                failures.append(e)
        return failures

    @staticmethod
    def _raise_failures(failures: List[TableKitError]) -> None:
        if not failures:
            return
        if len(failures) == 1:
            raise failures[0]
        raise CommitFailedError(failures)
