"""
OData filter rendering for key-range queries.

Single-value ranges render as equality; otherwise each bound renders as
gt/ge/lt/le. Comparisons are joined with ``and``.
"""

from typing import List, Optional

from ..constants import PARTITION_KEY, ROW_KEY
from ..query import KeyRange, QueryDescriptor


def quote(value: str) -> str:
    """Render a string literal, doubling embedded single quotes."""
    return "'" + value.replace("'", "''") + "'"


def render_range(property_name: str, key_range: KeyRange) -> List[str]:
    if key_range.is_single_value:
        return [f"{property_name} eq {quote(key_range.lower.value)}"]

    clauses = []
    if key_range.lower is not None:
        op = "ge" if key_range.lower.inclusive else "gt"
        clauses.append(f"{property_name} {op} {quote(key_range.lower.value)}")
    if key_range.upper is not None:
        op = "le" if key_range.upper.inclusive else "lt"
        clauses.append(f"{property_name} {op} {quote(key_range.upper.value)}")
    return clauses


def render_filter(descriptor: QueryDescriptor) -> Optional[str]:
    """
    Render a descriptor as an OData $filter expression.

    Returns:
        The filter string, or None when the query is unfiltered
    """
    clauses = render_range(PARTITION_KEY, descriptor.partition_range)
    clauses.extend(render_range(ROW_KEY, descriptor.row_range))
    if not clauses:
        return None
    return " and ".join(clauses)
