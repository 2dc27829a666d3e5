"""
Storage Services Package

Provides the abstract key-value interface, its in-memory and local JSON
file implementations, and the typed collection store built on top.
"""

from homeledger.services.storage.interface import (
    AuditStorageInterface,
    KeyValueStore,
    NotFoundError,
    SerializationError,
    StorageError,
)
from homeledger.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryKeyValueStore,
)
from homeledger.services.storage.json_file import JsonFileKeyValueStore
from homeledger.services.storage.collection_store import CollectionStore

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "KeyValueStore",
    # Exceptions
    "NotFoundError",
    "SerializationError",
    "StorageError",
    # Implementations
    "CollectionStore",
    "InMemoryAuditStorage",
    "InMemoryKeyValueStore",
    "JsonFileKeyValueStore",
]
