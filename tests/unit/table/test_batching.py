"""
Unit tests for batch grouping and transaction legality.
"""

import pytest

from tablekit.table.batching import group_in_batches, validate_atomic, validate_operation_keys
from tablekit.table.exceptions import InvalidOperationError, KeyFormatError
from tablekit.table.item import TableItem
from tablekit.table.operations import (
    ConflictHandling,
    OperationKind,
    PendingOperation,
    resolve_etag,
)


def insert(partition_key, row_key, table_name="t"):
    return PendingOperation.insert(table_name, TableItem(partition_key, row_key))


def delete(partition_key, row_key, table_name="t"):
    return PendingOperation.delete(table_name, partition_key, row_key)


def shape(runs):
    return [[op.row_key for op in run] for run in runs]


class TestPendingOperation:
    """Tests for operation construction."""

    def test_update_uses_item_etag(self):
        item = TableItem("p", "r", etag='W/"1"')

        assert PendingOperation.update("t", item).etag == 'W/"1"'
        assert PendingOperation.update("t", item, ConflictHandling.OVERWRITE).etag == "*"

    def test_missing_etag_is_wildcard(self):
        assert resolve_etag(TableItem("p", "r"), ConflictHandling.THROW) == "*"

    def test_delete_by_key_is_unconditional(self):
        operation = delete("p", "r")

        assert operation.kind is OperationKind.DELETE
        assert operation.etag is None
        assert operation.is_delete

    def test_delete_item_is_conditional(self):
        operation = PendingOperation.delete_item("t", TableItem("p", "r", etag="e"))
        assert operation.etag == "e"


class TestGroupInBatches:
    """Tests for group_in_batches."""

    def test_same_partition_forms_one_run(self):
        runs = group_in_batches([insert("p", "1"), insert("p", "2"), insert("p", "3")])
        assert shape(runs) == [["1", "2", "3"]]

    def test_partition_change_closes_run(self):
        runs = group_in_batches([insert("p", "1"), insert("q", "2"), insert("p", "3")])
        assert shape(runs) == [["1"], ["2"], ["3"]]

    def test_table_change_closes_run(self):
        runs = group_in_batches([insert("p", "1", "a"), insert("p", "2", "b")])
        assert len(runs) == 2

    def test_deletes_run_alone(self):
        """Test that deletes never join a transaction."""
        runs = group_in_batches([
            insert("p", "1"), delete("p", "2"), insert("p", "3"), insert("p", "4"),
        ])
        assert shape(runs) == [["1"], ["2"], ["3", "4"]]

    def test_mixed_kinds_share_a_run(self):
        item = TableItem("p", "2")
        runs = group_in_batches([insert("p", "1"), PendingOperation.upsert("t", item)])
        assert len(runs) == 1

    def test_repeated_row_key_runs_alone(self):
        """Test that a repeated row key does not share a transaction with later operations."""
        runs = group_in_batches([insert("p", "1"), insert("p", "1"), insert("p", "2")])
        assert shape(runs) == [["1"], ["1"], ["2"]]

    def test_max_batch_size(self):
        operations = [insert("p", f"{i:03d}") for i in range(250)]

        runs = group_in_batches(operations)

        assert [len(r) for r in runs] == [100, 100, 50]

    def test_order_preserved(self):
        operations = [insert("p", "1"), insert("q", "1"), delete("p", "9"), insert("q", "2")]

        runs = group_in_batches(operations)

        assert [op for run in runs for op in run] == operations

    def test_empty(self):
        assert group_in_batches([]) == []


class TestValidateAtomic:
    """Tests for entity group transaction rules."""

    def test_valid(self):
        validate_atomic([insert("p", "1"), delete("p", "2")])

    def test_too_many(self):
        with pytest.raises(InvalidOperationError) as exc_info:
            validate_atomic([insert("p", str(i)) for i in range(101)])
        assert "more than 100" in str(exc_info.value)

    def test_hundred_allowed(self):
        validate_atomic([insert("p", str(i)) for i in range(100)])

    def test_different_partitions(self):
        with pytest.raises(InvalidOperationError) as exc_info:
            validate_atomic([insert("p", "1"), insert("q", "1")])
        assert "different partitions" in str(exc_info.value)

    def test_multiple_tables(self):
        with pytest.raises(InvalidOperationError) as exc_info:
            validate_atomic([insert("p", "1", "a"), insert("p", "2", "b")])
        assert "multiple tables" in str(exc_info.value)

    def test_same_entity_twice(self):
        with pytest.raises(InvalidOperationError) as exc_info:
            validate_atomic([insert("p", "1"), delete("p", "1")])
        assert "same entity" in str(exc_info.value)


class TestValidateKeys:
    """Tests for commit-time key validation."""

    def test_bad_key(self):
        with pytest.raises(KeyFormatError):
            validate_operation_keys([insert("p", "ok"), insert("p", "bad#key")])
