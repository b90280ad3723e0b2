"""
Table storage provider.

Caller-facing facade: builds table items from records, stages them on a
table context, and exposes reads, range queries and commit.
"""

from typing import Any, Dict, Optional, Union

from tablekit.core.config_manager import TableKitConfig
from tablekit.core.runtime import initialize

from .constants import MAXIMUM_KEY_VALUE, MINIMUM_KEY_VALUE
from .context import TableContext
from .exceptions import ArgumentError
from .item import ReservedPropertyBehavior, TableItem
from .memory import MemoryTableContext, StorageAccount
from .operations import ConflictHandling, Execute
from .query import Filterable, Query, RowKeyFilterable
from .remote import RemoteTableContext, RetryPolicy, TableServiceClient


class TableStorageProvider:
    """
    Store and retrieve records by table, partition key and row key.

    Writes are staged until ``commit``. Records may be pydantic models or
    dataclasses with designated key fields, or ``dict``/``DynamicEntity``
    values with keys passed explicitly.
    """

    MINIMUM_KEY_VALUE = MINIMUM_KEY_VALUE
    MAXIMUM_KEY_VALUE = MAXIMUM_KEY_VALUE

    def __init__(self, context: TableContext, config: Optional[TableKitConfig] = None):
        self._context = context
        self._config = config or TableKitConfig()
        self._reserved_property_behavior = (
            ReservedPropertyBehavior.THROW
            if self._config.storage.throw_on_reserved_property_names
            else ReservedPropertyBehavior.IGNORE
        )

    @property
    def context(self) -> TableContext:
        return self._context

    @property
    def should_throw_for_reserved_property_names(self) -> bool:
        """
        Whether records carrying PartitionKey, RowKey, Timestamp or ETag
        properties are rejected. When false, PartitionKey and RowKey are used
        as keys and the others are ignored.
        """
        return self._reserved_property_behavior is ReservedPropertyBehavior.THROW

    @should_throw_for_reserved_property_names.setter
    def should_throw_for_reserved_property_names(self, value: bool) -> None:
        self._reserved_property_behavior = (
            ReservedPropertyBehavior.THROW if value else ReservedPropertyBehavior.IGNORE
        )

    def _item(
        self,
        table_name: str,
        record: Any,
        partition_key: Optional[str],
        row_key: Optional[str]
    ) -> TableItem:
        return TableItem.create(
            record,
            partition_key,
            row_key,
            self._reserved_property_behavior,
            table_name=table_name,
        )

    # ========== Writes ==========

    def add(
        self,
        table_name: str,
        record: Any,
        partition_key: Optional[str] = None,
        row_key: Optional[str] = None
    ) -> None:
        """Stage an insert; fails on commit if the row exists."""
        self._context.add_new_item(table_name, self._item(table_name, record, partition_key, row_key))

    def upsert(
        self,
        table_name: str,
        record: Any,
        partition_key: Optional[str] = None,
        row_key: Optional[str] = None
    ) -> None:
        """Stage an insert-or-replace."""
        self._context.upsert(table_name, self._item(table_name, record, partition_key, row_key))

    def update(
        self,
        table_name: str,
        record: Any,
        partition_key: Optional[str] = None,
        row_key: Optional[str] = None,
        conflict_handling: ConflictHandling = ConflictHandling.THROW
    ) -> None:
        """Stage a replace of an existing row, conditional on the record's ETag."""
        self._context.update(
            table_name, self._item(table_name, record, partition_key, row_key), conflict_handling
        )

    def merge(
        self,
        table_name: str,
        record: Any,
        partition_key: Optional[str] = None,
        row_key: Optional[str] = None,
        conflict_handling: ConflictHandling = ConflictHandling.THROW
    ) -> None:
        """Stage a merge of the record's properties into an existing row."""
        self._context.merge(
            table_name, self._item(table_name, record, partition_key, row_key), conflict_handling
        )

    def delete(
        self,
        table_name: str,
        record_or_partition_key: Any,
        row_key: Optional[str] = None,
        conflict_handling: ConflictHandling = ConflictHandling.THROW
    ) -> None:
        """
        Stage a delete.

        ``delete(table, partition_key, row_key)`` deletes unconditionally and
        ignores a missing row. ``delete(table, record)`` honours the record's
        ETag unless ``conflict_handling`` is ``OVERWRITE``; without a concrete
        ETag a missing row is ignored too.
        """
        if isinstance(record_or_partition_key, str):
            if row_key is None:
                raise ArgumentError("delete by key requires both a partition key and a row key")
            self._context.delete_item(table_name, record_or_partition_key, row_key)
            return
        item = self._item(table_name, record_or_partition_key, None, row_key)
        self._context.delete_entity(table_name, item, conflict_handling)

    def delete_all(self, table_name: str, partition_key: str) -> None:
        """Stage a delete for every row in the partition."""
        self._context.delete_collection(table_name, partition_key)

    # ========== Reads ==========

    def get(self, table_name: str, partition_key: str, row_key: str, target: Any = None) -> Any:
        """
        Read one row.

        Raises:
            EntityDoesNotExistError: If the row does not exist
        """
        return self._context.get_item(table_name, partition_key, row_key, target)

    async def get_async(self, table_name: str, partition_key: str, row_key: str, target: Any = None) -> Any:
        return await self._context.get_item_async(table_name, partition_key, row_key, target)

    def create_query(self, table_name: str, target: Any = None) -> Filterable:
        return self._context.create_query(table_name, target)

    def get_collection(
        self,
        table_name: str,
        partition_key: Optional[str] = None,
        target: Any = None
    ) -> Union[Filterable, RowKeyFilterable]:
        """All rows of a table, or of one partition."""
        query = self.create_query(table_name, target)
        if partition_key is None:
            return query
        return query.partition_key_equals(partition_key)

    def get_range_by_partition_key(
        self,
        table_name: str,
        partition_key_low: str,
        partition_key_high: str,
        target: Any = None
    ) -> RowKeyFilterable:
        """Rows whose partition key is within [low, high]."""
        return (
            self.create_query(table_name, target)
            .partition_key_from(partition_key_low).inclusive()
            .partition_key_to(partition_key_high).inclusive()
        )

    def get_range_by_row_key(
        self,
        table_name: str,
        partition_key: str,
        row_key_low: str,
        row_key_high: str,
        target: Any = None
    ) -> Query:
        """Rows of one partition whose row key is within [low, high]."""
        return (
            self.create_query(table_name, target)
            .partition_key_equals(partition_key)
            .row_key_from(row_key_low).inclusive()
            .row_key_to(row_key_high).inclusive()
        )

    # ========== Commit ==========

    def commit(self, mode: Optional[Union[Execute, str]] = None) -> None:
        """Execute staged operations; see ``TableContext.commit``."""
        self._context.commit(mode)

    async def commit_async(self, mode: Optional[Union[Execute, str]] = None) -> None:
        await self._context.commit_async(mode)


class InMemoryTableStorageProvider(TableStorageProvider):
    """Provider over an in-memory ``StorageAccount``."""

    def __init__(self, account: StorageAccount, config: Optional[TableKitConfig] = None):
        config = config or TableKitConfig()
        super().__init__(MemoryTableContext(account, config.storage.default_execute), config)

    @classmethod
    def from_config_file(
        cls,
        account: StorageAccount,
        config_file: Optional[str] = None,
        overrides: Optional[Dict[str, Any]] = None
    ) -> "InMemoryTableStorageProvider":
        """Load configuration, apply its logging section and build a provider."""
        return cls(account, initialize(config_file, overrides))


class RemoteTableStorageProvider(TableStorageProvider):
    """Provider over a remote table service client."""

    def __init__(self, client: TableServiceClient, config: Optional[TableKitConfig] = None):
        config = config or TableKitConfig()
        context = RemoteTableContext(
            client,
            retry_policy=RetryPolicy.from_config(config.retry),
            page_size=config.remote.page_size,
            default_execute=config.storage.default_execute,
        )
        super().__init__(context, config)

    @classmethod
    def from_config_file(
        cls,
        client: TableServiceClient,
        config_file: Optional[str] = None,
        overrides: Optional[Dict[str, Any]] = None
    ) -> "RemoteTableStorageProvider":
        """Load configuration, apply its logging section and build a provider."""
        return cls(client, initialize(config_file, overrides))
