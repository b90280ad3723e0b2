"""
Interface of a remote table service client.

The HTTP transport, authentication and service error parsing live in an
implementation of ``TableServiceClient``; ``RemoteTableContext`` only drives
this interface. Implementations report failures with the tablekit
exception types: ``EntityAlreadyExistsError``, ``EntityDoesNotExistError``,
``EntityChangedError`` for row conflicts and ``TransientServiceError`` for
failures worth retrying.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional, Sequence

from ..operations import PendingOperation
from ..query import RowPage
from ..types import TableRow


class TableServiceClient(ABC):

    @abstractmethod
    def get_entity(self, table_name: str, partition_key: str, row_key: str) -> Optional[TableRow]:
        """Return the row, or None if it does not exist."""

    @abstractmethod
    def query_entities(
        self,
        table_name: str,
        filter_expr: Optional[str],
        top: Optional[int],
        continuation: Any = None
    ) -> RowPage:
        """
        Return one page of rows.

        Args:
            table_name: Table to query
            filter_expr: OData $filter expression, or None for all rows
            top: Largest page to return
            continuation: Token from the previous page, or None for the first
        """

    @abstractmethod
    def execute_operation(self, operation: PendingOperation) -> None:
        """Execute one operation."""

    @abstractmethod
    def execute_transaction(self, table_name: str, operations: Sequence[PendingOperation]) -> None:
        """Execute an entity group transaction; all or nothing."""
