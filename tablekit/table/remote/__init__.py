"""Remote table service adapter."""

from .client import TableServiceClient
from .context import RemoteTableContext
from .query import render_filter
from .retry import RetryPolicy, call_with_retry

__all__ = [
    "RemoteTableContext",
    "RetryPolicy",
    "TableServiceClient",
    "call_with_retry",
    "render_filter",
]
