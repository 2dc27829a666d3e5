"""
Abstract Storage Interface

DESIGN DECISION: Storage is a plain key-value store holding whole
collections under one key each (get-all / replace-all). This allows us to:
1. Keep the core free of storage concerns entirely
2. Use in-memory storage for testing
3. Swap the local JSON file for anything that can get and set a value

The interface is intentionally tiny. Values are JSON-compatible
(dicts, lists, strings, numbers, booleans, None).
"""

from abc import ABC, abstractmethod
from typing import Any, Optional
from uuid import UUID

from homeledger.models.audit import AuditEvent


class KeyValueStore(ABC):
    """
    Abstract interface for key-value storage.

    Any backend (in-memory, local JSON file, browser-style storage)
    must implement these methods.
    """

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        """
        Read the value stored under `key`.

        Returns:
            The stored JSON-compatible value, or None if the key is absent

        Raises:
            StorageError: If the backend cannot be read
        """
        pass

    @abstractmethod
    async def set(self, key: str, value: Any) -> None:
        """
        Store `value` under `key`, replacing whatever was there.

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """
        Remove `key`.

        Returns:
            True if the key existed
        """
        pass

    @abstractmethod
    async def keys(self) -> list[str]:
        """List every stored key."""
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (e.g., one archive run).

        Returns:
            List of related events in chronological order
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            List of recent events (newest first)
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class SerializationError(StorageError):
    """A stored value could not be parsed back into models."""
    pass
