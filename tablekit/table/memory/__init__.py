"""In-memory table storage engine."""

from .account import MemoryTable, Partition, StorageAccount, StoredRow
from .context import MemoryTableContext

__all__ = [
    "MemoryTable",
    "MemoryTableContext",
    "Partition",
    "StorageAccount",
    "StoredRow",
]
