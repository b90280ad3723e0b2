"""Table context backed by a remote table service client."""

import logging
from typing import Any, Optional, Sequence, Union

from ..constants import DEFAULT_PAGE_SIZE
from ..context import TableContext
from ..exceptions import EntityDoesNotExistError
from ..operations import Execute, PendingOperation
from ..query import QueryDescriptor, RowPage
from ..types import TableRow
from .client import TableServiceClient
from .query import render_filter
from .retry import RetryPolicy, call_with_retry

logger = logging.getLogger(__name__)


class RemoteTableContext(TableContext):
    """
    Drives a ``TableServiceClient`` with retries and provider-side paging.

    Queries are rendered to OData filters and fetched ``page_size`` rows at
    a time.
    """

    def __init__(
        self,
        client: TableServiceClient,
        retry_policy: Optional[RetryPolicy] = None,
        page_size: int = DEFAULT_PAGE_SIZE,
        default_execute: Union[Execute, str] = Execute.INDIVIDUALLY
    ):
        super().__init__(default_execute)
        self._client = client
        self._retry_policy = retry_policy or RetryPolicy()
        self._page_size = page_size

    @property
    def page_size(self) -> int:
        return self._page_size

    def _call(self, operation_name: str, func, *args: Any) -> Any:
        return call_with_retry(self._retry_policy, operation_name, func, *args)

    def get_row(self, table_name: str, partition_key: str, row_key: str) -> Optional[TableRow]:
        return self._call("get_entity", self._client.get_entity, table_name, partition_key, row_key)

    def fetch_page(
        self,
        table_name: str,
        descriptor: QueryDescriptor,
        continuation: Any = None
    ) -> RowPage:
        top = self._page_size if descriptor.top is None else min(self._page_size, descriptor.top)
        filter_expr = render_filter(descriptor)
        logger.debug(f"Querying '{table_name}' filter={filter_expr!r} top={top}")
        return self._call(
            "query_entities", self._client.query_entities,
            table_name, filter_expr, top, continuation
        )

    def execute_operation(self, operation: PendingOperation) -> None:
        try:
            self._call("execute_operation", self._client.execute_operation, operation)
        except EntityDoesNotExistError:
            # unconditional delete of a missing row
            if not operation.is_delete or operation.expects_etag:
                raise
            logger.debug(f"Row already absent: {operation.describe()}")

    def execute_atomic(self, operations: Sequence[PendingOperation]) -> None:
        if not operations:
            return
        self._call(
            "execute_transaction", self._client.execute_transaction,
            operations[0].table_name, operations
        )
