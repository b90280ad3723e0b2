"""
Unit tests for TableStorageProvider.
"""

from datetime import datetime, timezone
from typing import Annotated, Optional

import pytest
from pydantic import BaseModel

from tablekit import InMemoryTableStorageProvider, RemoteTableStorageProvider, StorageAccount
from tablekit.core.config_manager import TableKitConfig
from tablekit.table.entity import ETag, PartitionKey, RowKey
from tablekit.table.exceptions import (
    ArgumentError,
    EntityChangedError,
    EntityDoesNotExistError,
    InvalidEntityError,
)
from tablekit.table.operations import ConflictHandling, Execute
from tablekit.table.query import RowPage
from tablekit.table.remote import RemoteTableContext, TableServiceClient


class Employee(BaseModel):
    department: Annotated[str, PartitionKey]
    employee_id: Annotated[str, RowKey]
    etag: Annotated[Optional[str], ETag] = None
    name: str = ""
    hired: Optional[datetime] = None


TABLE = "employees"


@pytest.fixture
def account():
    return StorageAccount()


@pytest.fixture
def provider(account):
    """Create a provider over a fresh in-memory account."""
    return InMemoryTableStorageProvider(account)


@pytest.fixture
def staffed(provider):
    """Provider with three committed employees."""
    provider.add(TABLE, Employee(department="eng", employee_id="001", name="Ada"))
    provider.add(TABLE, Employee(department="eng", employee_id="002", name="Grace"))
    provider.add(TABLE, Employee(department="ops", employee_id="001", name="Linus"))
    provider.commit()
    return provider


class TestWrites:
    """Tests for staged writes through the provider."""

    def test_add_and_get_typed(self, staffed):
        employee = staffed.get(TABLE, "eng", "001", Employee)

        assert employee.name == "Ada"
        assert employee.etag is not None

    def test_dynamic_record_with_explicit_keys(self, provider):
        hired = datetime(2023, 4, 1, 9, 0, tzinfo=timezone.utc)
        provider.add(TABLE, {"name": "Ken", "hired": hired}, "eng", "003")
        provider.commit()

        entity = provider.get(TABLE, "eng", "003")
        assert entity.name == "Ken"
        assert entity.hired == hired

    def test_update_with_current_etag(self, staffed):
        employee = staffed.get(TABLE, "eng", "001", Employee)
        employee.name = "Ada L."

        staffed.update(TABLE, employee)
        staffed.commit()

        assert staffed.get(TABLE, "eng", "001", Employee).name == "Ada L."

    def test_update_with_stale_etag(self, staffed):
        first = staffed.get(TABLE, "eng", "001", Employee)
        second = staffed.get(TABLE, "eng", "001", Employee)

        staffed.update(TABLE, first)
        staffed.commit()

        staffed.update(TABLE, second)
        with pytest.raises(EntityChangedError):
            staffed.commit()

    def test_overwrite_ignores_stale_etag(self, staffed):
        stale = staffed.get(TABLE, "eng", "001", Employee)
        staffed.upsert(TABLE, Employee(department="eng", employee_id="001", name="Other"))
        staffed.commit()

        stale.name = "Mine"
        staffed.update(TABLE, stale, conflict_handling=ConflictHandling.OVERWRITE)
        staffed.commit()

        assert staffed.get(TABLE, "eng", "001", Employee).name == "Mine"

    def test_merge(self, staffed):
        staffed.merge(TABLE, {"title": "Lead"}, "eng", "002")
        staffed.commit()

        entity = staffed.get(TABLE, "eng", "002")
        assert entity.name == "Grace"
        assert entity.title == "Lead"

    def test_delete_by_keys(self, staffed):
        staffed.delete(TABLE, "eng", "001")
        staffed.delete(TABLE, "eng", "missing")
        staffed.commit()

        with pytest.raises(EntityDoesNotExistError):
            staffed.get(TABLE, "eng", "001")

    def test_delete_by_key_requires_row_key(self, staffed):
        with pytest.raises(ArgumentError):
            staffed.delete(TABLE, "eng")

    def test_delete_record_honours_etag(self, staffed):
        stale = staffed.get(TABLE, "eng", "001", Employee)
        staffed.upsert(TABLE, Employee(department="eng", employee_id="001"))
        staffed.commit()

        staffed.delete(TABLE, stale)
        with pytest.raises(EntityChangedError):
            staffed.commit()

    def test_delete_record_without_etag_of_missing_row(self, provider):
        provider.delete(TABLE, Employee(department="eng", employee_id="404"))
        provider.commit(Execute.INDIVIDUALLY)

        with pytest.raises(EntityDoesNotExistError):
            provider.get(TABLE, "eng", "404")

    def test_overwrite_delete_of_missing_row(self, staffed):
        stale = staffed.get(TABLE, "eng", "001", Employee)
        staffed.delete(TABLE, "eng", "001")
        staffed.commit()

        staffed.delete(TABLE, stale, conflict_handling=ConflictHandling.OVERWRITE)
        staffed.commit(Execute.INDIVIDUALLY)

        with pytest.raises(EntityDoesNotExistError):
            staffed.get(TABLE, "eng", "001")

    def test_delete_all(self, staffed):
        staffed.delete_all(TABLE, "eng")
        staffed.commit()

        assert staffed.get_collection(TABLE, "eng").execute() == []
        assert len(staffed.get_collection(TABLE, "ops").execute()) == 1


class TestReservedPropertyNames:
    """Tests for the reserved property name switch."""

    def test_throws_by_default(self, provider):
        assert provider.should_throw_for_reserved_property_names

        with pytest.raises(InvalidEntityError):
            provider.add(TABLE, {"PartitionKey": "eng", "RowKey": "009"})

    def test_ignore_when_disabled(self, provider):
        provider.should_throw_for_reserved_property_names = False

        provider.add(TABLE, {"PartitionKey": "eng", "RowKey": "009", "name": "Bo"})
        provider.commit()

        assert provider.get(TABLE, "eng", "009").name == "Bo"

    def test_configured_off(self, account):
        config = TableKitConfig.model_validate({"storage": {"throw_on_reserved_property_names": False}})
        provider = InMemoryTableStorageProvider(account, config)

        assert not provider.should_throw_for_reserved_property_names


class TestReads:
    """Tests for collection and range reads."""

    def test_get_collection(self, staffed):
        assert len(staffed.get_collection(TABLE).execute()) == 3
        assert len(staffed.get_collection(TABLE, "eng").execute()) == 2

    def test_typed_collection(self, staffed):
        employees = staffed.get_collection(TABLE, "eng", Employee).execute()
        assert [e.name for e in employees] == ["Ada", "Grace"]

    def test_range_by_partition_key(self, staffed):
        results = staffed.get_range_by_partition_key(TABLE, "a", "f").execute()
        assert {r.PartitionKey for r in results} == {"eng"}

    def test_range_by_row_key_is_inclusive(self, staffed):
        results = staffed.get_range_by_row_key(TABLE, "eng", "001", "002").execute()
        assert [r.RowKey for r in results] == ["001", "002"]

    def test_key_sentinels(self, staffed):
        results = staffed.get_range_by_partition_key(
            TABLE, staffed.MINIMUM_KEY_VALUE, staffed.MAXIMUM_KEY_VALUE
        ).execute()
        assert len(results) == 3

    @pytest.mark.asyncio
    async def test_get_async(self, staffed):
        employee = await staffed.get_async(TABLE, "ops", "001", Employee)
        assert employee.name == "Linus"

    @pytest.mark.asyncio
    async def test_commit_async(self, provider):
        provider.add(TABLE, Employee(department="eng", employee_id="010"))
        await provider.commit_async()

        assert provider.get(TABLE, "eng", "010", Employee).employee_id == "010"


class TestConstruction:
    """Tests for provider construction from configuration."""

    def test_default_execute_from_config(self, account):
        config = TableKitConfig.model_validate({"storage": {"default_execute": "atomically"}})
        provider = InMemoryTableStorageProvider(account, config)

        assert provider.context._default_execute is Execute.ATOMICALLY

    def test_remote_provider(self):
        """Test that retry and paging settings reach the remote context."""
        class NullClient(TableServiceClient):
            def get_entity(self, table_name, partition_key, row_key):
                return None

            def query_entities(self, table_name, filter_expr, top, continuation=None):
                return RowPage([])

            def execute_operation(self, operation):
                pass

            def execute_transaction(self, table_name, operations):
                pass

        config = TableKitConfig.model_validate({
            "retry": {"max_attempts": 2},
            "remote": {"page_size": 50},
        })
        provider = RemoteTableStorageProvider(NullClient(), config)

        assert isinstance(provider.context, RemoteTableContext)
        assert provider.context.page_size == 50
        assert provider.context._retry_policy.max_attempts == 2
        assert provider.get_collection(TABLE).execute() == []
