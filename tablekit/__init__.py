"""
tablekit: partitioned key-value table storage

Typed and dynamic records over a table-service style store, with an
in-memory engine for local development and testing.
"""

__version__ = "0.1.0"

from .table import (
    Execute,
    InMemoryTableStorageProvider,
    RemoteTableStorageProvider,
    StorageAccount,
    TableStorageProvider,
)

__all__ = [
    "Execute",
    "InMemoryTableStorageProvider",
    "RemoteTableStorageProvider",
    "StorageAccount",
    "TableStorageProvider",
    "__version__",
]
