"""Services package."""

from homeledger.services.clock import Clock, FixedClock, SystemClock
from homeledger.services.storage import (
    AuditStorageInterface,
    CollectionStore,
    InMemoryAuditStorage,
    InMemoryKeyValueStore,
    JsonFileKeyValueStore,
    KeyValueStore,
    NotFoundError,
    SerializationError,
    StorageError,
)

__all__ = [
    # Clock
    "Clock",
    "FixedClock",
    "SystemClock",
    # Storage services
    "AuditStorageInterface",
    "CollectionStore",
    "InMemoryAuditStorage",
    "InMemoryKeyValueStore",
    "JsonFileKeyValueStore",
    "KeyValueStore",
    "NotFoundError",
    "SerializationError",
    "StorageError",
]
