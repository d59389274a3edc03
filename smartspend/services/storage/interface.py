"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap the local JSON files for another backend later
2. Use in-memory storage for testing
3. Keep the entity store decoupled from where bytes end up

The interface is intentionally tiny: named slots holding full snapshots.
The storage layer never interprets the text, the entity store does.
"""

from abc import ABC, abstractmethod
from typing import Optional


class KeyValueStorageInterface(ABC):
    """
    Abstract interface for snapshot storage.

    Every slot holds the complete serialized collection.
    A save overwrites the slot (last write wins).
    """

    @abstractmethod
    def load(self, key: str) -> Optional[str]:
        """
        Read a slot.

        Args:
            key: Slot name

        Returns:
            The stored text, or None if the slot was never written

        Raises:
            StorageError: If the backend cannot be read
        """
        pass

    @abstractmethod
    def save(self, key: str, value: str) -> None:
        """
        Overwrite a slot with a full snapshot.

        Args:
            key: Slot name
            value: Serialized collection

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    def delete(self, key: str) -> bool:
        """
        Remove a slot.

        Returns:
            True if the slot existed
        """
        pass

    @abstractmethod
    def keys(self) -> list[str]:
        """List slots currently holding data."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class StorageConnectionError(StorageError):
    """Could not reach the storage backend."""
    pass
