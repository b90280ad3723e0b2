"""
Batching rules for staged operations.

Entity group transactions are limited to one table and one partition, at
most 100 operations, and one operation per row. These helpers split a
staged sequence into executable groups and check transaction legality.
"""

import logging
from typing import List, Sequence

from .constants import MAX_BATCH_SIZE
from .exceptions import InvalidOperationError
from .keys import validate_keys
from .operations import PendingOperation

logger = logging.getLogger(__name__)


def validate_operation_keys(operations: Sequence[PendingOperation]) -> None:
    """
    Validate every operation's keys.

    Raises:
        KeyFormatError: On the first malformed key, before anything executes
    """
    for operation in operations:
        validate_keys(operation.partition_key, operation.row_key)


def can_join(run: Sequence[PendingOperation], operation: PendingOperation) -> bool:
    """Check if an operation can extend a transactional run."""
    if not run or operation.is_delete:
        return False
    head = run[0]
    return (
        not head.is_delete
        and len(run) < MAX_BATCH_SIZE
        and operation.table_name == head.table_name
        and operation.partition_key == head.partition_key
    )


def group_in_batches(
    operations: Sequence[PendingOperation],
    max_batch_size: int = MAX_BATCH_SIZE
) -> List[List[PendingOperation]]:
    """
    Split staged operations into runs, keeping staging order.

    A run holds consecutive non-delete operations on one table and partition,
    with distinct row keys, up to ``max_batch_size`` long. Deletes form runs
    of their own. An operation whose row key already appears in the current
    run closes that run and forms a run of its own, so it never shares a
    transaction with the operations that follow it.

    Args:
        operations: Staged operations in staging order
        max_batch_size: Largest run allowed

    Returns:
        Runs in staging order; concatenated they equal ``operations``
    """
    runs: List[List[PendingOperation]] = []
    current: List[PendingOperation] = []
    row_keys: set = set()

    def close() -> None:
        nonlocal current, row_keys
        if current:
            runs.append(current)
        current = []
        row_keys = set()

    for operation in operations:
        if operation.is_delete:
            close()
            runs.append([operation])
            continue

        if current and operation.row_key in row_keys and can_join(current, operation):
            close()
            runs.append([operation])
            continue

        if not (can_join(current, operation) and len(current) < max_batch_size):
            close()

        current.append(operation)
        row_keys.add(operation.row_key)

    close()
    logger.debug(f"Grouped {len(operations)} operations into {len(runs)} runs")
    return runs


def validate_atomic(operations: Sequence[PendingOperation]) -> None:
    """
    Check that operations form a legal entity group transaction.

    Raises:
        InvalidOperationError: If there are more than 100 operations, or they
            span tables or partitions, or two target the same row
    """
    if len(operations) > MAX_BATCH_SIZE:
        raise InvalidOperationError(
            f"Cannot atomically execute more than {MAX_BATCH_SIZE} operations",
            details={"operation_count": len(operations)}
        )

    partition_keys = {op.partition_key for op in operations}
    if len(partition_keys) > 1:
        raise InvalidOperationError(
            "Cannot atomically execute operations on different partitions",
            details={"partition_keys": sorted(partition_keys)}
        )

    table_names = {op.table_name for op in operations}
    if len(table_names) > 1:
        raise InvalidOperationError(
            "Cannot atomically execute operations on multiple tables",
            details={"table_names": sorted(table_names)}
        )

    seen = set()
    for op in operations:
        if op.key in seen:
            raise InvalidOperationError(
                "Cannot atomically execute two operations on the same entity",
                details={"partition_key": op.partition_key, "row_key": op.row_key}
            )
        seen.add(op.key)
