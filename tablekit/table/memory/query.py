"""In-memory evaluation of key-range query descriptors."""

from typing import Iterable, List

from ..keys import ordinal_key
from ..query import QueryDescriptor
from ..types import TableRow


def sort_rows(rows: Iterable[TableRow]) -> List[TableRow]:
    """Order rows by partition key, then row key, comparing ordinally."""
    return sorted(rows, key=lambda r: (ordinal_key(r.partition_key), ordinal_key(r.row_key)))


def evaluate(descriptor: QueryDescriptor, rows: Iterable[TableRow]) -> List[TableRow]:
    """
    Filter, sort and cap rows for a descriptor.

    The whole result is one page; there is no page size limit.
    """
    matched = sort_rows(r for r in rows if descriptor.matches(r.partition_key, r.row_key))
    if descriptor.top is not None:
        matched = matched[:descriptor.top]
    return matched
