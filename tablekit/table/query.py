"""
Key-range query builder and paged result protocol.

Builders are immutable: every call returns a new query, so a partially
built query can be reused as a prefix::

    base = context.create_query("orders").partition_key_equals("2024")
    recent = base.row_key_from("2024-06").inclusive().execute()
    first_ten = base.top(10).execute()

The builder classes restrict which filter may follow which: partition
filters come first, then row filters, then ``top``.
"""

import asyncio
import logging
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Iterator, List, Optional, Protocol

from .entity import from_properties, is_dynamic_target
from .exceptions import ArgumentError, InvalidOperationError
from .keys import ordinal_key
from .types import TableRow

logger = logging.getLogger(__name__)


# ========== Descriptor ==========

@dataclass(frozen=True)
class KeyBound:
    value: str
    inclusive: bool = True


@dataclass(frozen=True)
class KeyRange:
    """A pair of optional bounds on a key."""
    lower: Optional[KeyBound] = None
    upper: Optional[KeyBound] = None

    @classmethod
    def exactly(cls, value: str) -> "KeyRange":
        bound = KeyBound(value, True)
        return cls(bound, bound)

    @property
    def is_single_value(self) -> bool:
        return (
            self.lower is not None
            and self.upper is not None
            and self.lower.inclusive
            and self.upper.inclusive
            and self.lower.value == self.upper.value
        )

    @property
    def is_unbounded(self) -> bool:
        return self.lower is None and self.upper is None

    def contains(self, value: str) -> bool:
        """Ordinal range test."""
        key = ordinal_key(value)
        if self.lower is not None:
            lower = ordinal_key(self.lower.value)
            if key < lower or (key == lower and not self.lower.inclusive):
                return False
        if self.upper is not None:
            upper = ordinal_key(self.upper.value)
            if key > upper or (key == upper and not self.upper.inclusive):
                return False
        return True


@dataclass(frozen=True)
class QueryDescriptor:
    """Partition key range, row key range and optional result cap."""
    partition_range: KeyRange = field(default_factory=KeyRange)
    row_range: KeyRange = field(default_factory=KeyRange)
    top: Optional[int] = None

    def matches(self, partition_key: str, row_key: str) -> bool:
        return self.partition_range.contains(partition_key) and self.row_range.contains(row_key)


# ========== Paging ==========

@dataclass(frozen=True)
class RowPage:
    """One page of rows plus an opaque continuation, ``None`` on the last page."""
    rows: List[TableRow]
    continuation: Any = None


class RowSource(Protocol):
    def fetch_page(
        self,
        table_name: str,
        descriptor: QueryDescriptor,
        continuation: Any = None
    ) -> RowPage:
        ...


class PartialResult:
    """
    One page of decoded results.

    ``get_next`` fetches the following page; calling it when
    ``has_more_results`` is false raises ``InvalidOperationError``.
    """

    def __init__(
        self,
        query: "ExecutableQuery",
        results: List[Any],
        continuation: Any,
        remaining: Optional[int]
    ):
        self._query = query
        self._results = results
        self._continuation = continuation
        self._remaining = remaining

    @property
    def results(self) -> List[Any]:
        return list(self._results)

    @property
    def has_more_results(self) -> bool:
        return self._continuation is not None and (self._remaining is None or self._remaining > 0)

    def get_next(self) -> "PartialResult":
        if not self.has_more_results:
            raise InvalidOperationError("no more results")
        return self._query._fetch_partial(self._continuation, self._remaining)

    async def get_next_async(self) -> "PartialResult":
        if not self.has_more_results:
            raise InvalidOperationError("no more results")
        return await asyncio.to_thread(self._query._fetch_partial, self._continuation, self._remaining)

    def __iter__(self) -> Iterator[Any]:
        return iter(self._results)

    def __len__(self) -> int:
        return len(self._results)


def flatten(partial: PartialResult) -> List[Any]:
    """Follow continuations until exhausted or the top count is reached."""
    results = partial.results
    while partial.has_more_results:
        partial = partial.get_next()
        results.extend(partial.results)
    return results


async def flatten_async(partial: PartialResult) -> List[Any]:
    results = partial.results
    while partial.has_more_results:
        partial = await partial.get_next_async()
        results.extend(partial.results)
    return results


# ========== Builder ==========

class BoundChoice:
    """Pending bound awaiting ``inclusive()`` or ``exclusive()``."""

    def __init__(self, apply: Callable[[bool], Any]):
        self._apply = apply

    def inclusive(self) -> Any:
        return self._apply(True)

    def exclusive(self) -> Any:
        return self._apply(False)


class ExecutableQuery:
    """
    A fully built query.

    Iterating re-runs the query each time and reflects current state.
    """

    def __init__(
        self,
        source: RowSource,
        table_name: str,
        target: Any = None,
        descriptor: Optional[QueryDescriptor] = None,
        include_etag: bool = True
    ):
        self._source = source
        self._table_name = table_name
        self._target = target
        self._descriptor = descriptor or QueryDescriptor()
        self._include_etag = include_etag

    @property
    def table_name(self) -> str:
        return self._table_name

    @property
    def descriptor(self) -> QueryDescriptor:
        return self._descriptor

    def _successor(self, query_class: type, descriptor: QueryDescriptor) -> Any:
        return query_class(self._source, self._table_name, self._target, descriptor, self._include_etag)

    def _decode(self, row: TableRow) -> Any:
        return from_properties(
            row,
            self._target,
            include_etag=self._include_etag,
            strip_nulls=is_dynamic_target(self._target),
        )

    def _fetch(self, continuation: Any, remaining: Optional[int]) -> RowPage:
        descriptor = self._descriptor if remaining == self._descriptor.top else replace(
            self._descriptor, top=remaining
        )
        page = self._source.fetch_page(self._table_name, descriptor, continuation)
        if remaining is not None and len(page.rows) > remaining:
            return RowPage(page.rows[:remaining], page.continuation)
        return page

    def _fetch_partial(self, continuation: Any, remaining: Optional[int]) -> PartialResult:
        page = self._fetch(continuation, remaining)
        if remaining is not None:
            remaining -= len(page.rows)
        return PartialResult(self, [self._decode(r) for r in page.rows], page.continuation, remaining)

    def __iter__(self) -> Iterator[Any]:
        remaining = self._descriptor.top
        continuation = None
        while remaining is None or remaining > 0:
            page = self._fetch(continuation, remaining)
            for row in page.rows:
                yield self._decode(row)
            if remaining is not None:
                remaining -= len(page.rows)
            continuation = page.continuation
            if continuation is None:
                return

    def execute(self) -> List[Any]:
        """Run the query and return every result."""
        results = list(self)
        logger.debug(f"Query on '{self._table_name}' returned {len(results)} rows")
        return results

    async def execute_async(self) -> List[Any]:
        return await asyncio.to_thread(self.execute)

    def partial(self) -> PartialResult:
        """Fetch the first page."""
        return self._fetch_partial(None, self._descriptor.top)

    async def partial_async(self) -> PartialResult:
        return await asyncio.to_thread(self.partial)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(table={self._table_name!r}, {self._descriptor})"


class Query(ExecutableQuery):
    def top(self, count: int) -> ExecutableQuery:
        """Cap the number of results."""
        if count < 1:
            raise ArgumentError(f"top count must be positive, got {count}")
        return self._successor(ExecutableQuery, replace(self._descriptor, top=count))


class RowKeyToFilterable(Query):
    def row_key_to(self, value: str) -> BoundChoice:
        def apply(inclusive: bool) -> Query:
            row_range = replace(self._descriptor.row_range, upper=KeyBound(value, inclusive))
            return self._successor(Query, replace(self._descriptor, row_range=row_range))
        return BoundChoice(apply)


class RowKeyFilterable(RowKeyToFilterable):
    def row_key_equals(self, value: str) -> Query:
        return self._successor(Query, replace(self._descriptor, row_range=KeyRange.exactly(value)))

    def row_key_from(self, value: str) -> BoundChoice:
        def apply(inclusive: bool) -> RowKeyToFilterable:
            row_range = replace(self._descriptor.row_range, lower=KeyBound(value, inclusive))
            return self._successor(RowKeyToFilterable, replace(self._descriptor, row_range=row_range))
        return BoundChoice(apply)


class PartitionKeyToFilterable(RowKeyFilterable):
    def partition_key_to(self, value: str) -> BoundChoice:
        def apply(inclusive: bool) -> RowKeyFilterable:
            partition_range = replace(self._descriptor.partition_range, upper=KeyBound(value, inclusive))
            return self._successor(RowKeyFilterable, replace(self._descriptor, partition_range=partition_range))
        return BoundChoice(apply)


class Filterable(PartitionKeyToFilterable):
    """Root of a query chain."""

    def partition_key_equals(self, value: str) -> RowKeyFilterable:
        return self._successor(
            RowKeyFilterable, replace(self._descriptor, partition_range=KeyRange.exactly(value))
        )

    def partition_key_from(self, value: str) -> BoundChoice:
        def apply(inclusive: bool) -> PartitionKeyToFilterable:
            partition_range = replace(self._descriptor.partition_range, lower=KeyBound(value, inclusive))
            return self._successor(
                PartitionKeyToFilterable, replace(self._descriptor, partition_range=partition_range)
            )
        return BoundChoice(apply)
