"""
Unit tests for TableItem construction.
"""

from typing import Annotated, Optional

import pytest
from pydantic import BaseModel

from tablekit.table.entity import DynamicEntity, ETag, PartitionKey, RowKey
from tablekit.table.exceptions import ArgumentError, InvalidEntityError
from tablekit.table.item import ReservedPropertyBehavior, TableItem
from tablekit.table.types import EdmType


class Order(BaseModel):
    customer: Annotated[str, PartitionKey]
    order_id: Annotated[str, RowKey]
    etag: Annotated[Optional[str], ETag] = None
    total: float = 0.0


class TestCreate:
    """Tests for TableItem.create."""

    def test_keys_from_typed_record(self):
        item = TableItem.create(Order(customer="c1", order_id="o1", total=9.5))

        assert item.partition_key == "c1"
        assert item.row_key == "o1"
        assert item.etag is None
        assert item.properties["total"].value == 9.5

    def test_etag_from_record(self):
        item = TableItem.create(Order(customer="c1", order_id="o1", etag='W/"7"'))
        assert item.etag == 'W/"7"'

    def test_explicit_keys_for_dynamic_record(self):
        item = TableItem.create({"colour": "red"}, "pk", "rk", table_name="things")

        assert (item.partition_key, item.row_key) == ("pk", "rk")
        assert item.table_name == "things"
        assert item.properties["colour"].edm_type is EdmType.STRING

    def test_missing_key(self):
        """Test that a dynamic record without explicit keys is rejected."""
        with pytest.raises(ArgumentError) as exc_info:
            TableItem.create({"colour": "red"}, "pk")

        assert "RowKey" in str(exc_info.value)

    def test_explicit_key_must_match_record(self):
        with pytest.raises(ArgumentError):
            TableItem.create(Order(customer="c1", order_id="o1"), partition_key="c2")

    def test_matching_explicit_key(self):
        item = TableItem.create(Order(customer="c1", order_id="o1"), "c1", "o1")
        assert item.partition_key == "c1"

    def test_properties_are_read_only(self):
        item = TableItem.create({"a": 1}, "pk", "rk")

        with pytest.raises(TypeError):
            item.properties["a"] = None


class TestReservedProperties:
    """Tests for records carrying reserved property names."""

    def test_throw_on_reserved_names(self):
        record = DynamicEntity(PartitionKey="pk", RowKey="rk", colour="red")

        with pytest.raises(InvalidEntityError) as exc_info:
            TableItem.create(record)

        assert "PartitionKey" in str(exc_info.value)

    def test_ignore_uses_reserved_keys(self):
        record = DynamicEntity(
            PartitionKey="pk", RowKey="rk", Timestamp="yesterday", ETag='W/"3"', colour="red"
        )

        item = TableItem.create(record, reserved_property_behavior=ReservedPropertyBehavior.IGNORE)

        assert (item.partition_key, item.row_key) == ("pk", "rk")
        assert item.etag == 'W/"3"'
        assert set(item.properties) == {"colour"}

    def test_ignore_rejects_non_string_key(self):
        record = {"PartitionKey": 5, "RowKey": "rk"}

        with pytest.raises(InvalidEntityError):
            TableItem.create(record, reserved_property_behavior=ReservedPropertyBehavior.IGNORE)

    def test_ignore_conflicting_explicit_key(self):
        record = {"PartitionKey": "pk", "RowKey": "rk"}

        with pytest.raises(ArgumentError):
            TableItem.create(
                record, "other", reserved_property_behavior=ReservedPropertyBehavior.IGNORE
            )


class TestCopies:
    """Tests for derived items."""

    def test_with_etag(self):
        item = TableItem.create({"a": 1}, "pk", "rk")
        tagged = item.with_etag('W/"9"')

        assert tagged.etag == 'W/"9"'
        assert item.etag is None
        assert tagged.properties == item.properties

    def test_with_table_name(self):
        item = TableItem.create({"a": 1}, "pk", "rk").with_table_name("orders")
        assert item.table_name == "orders"
