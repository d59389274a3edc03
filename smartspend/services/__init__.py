"""Services package."""

from smartspend.services.storage import (
    InMemoryStorage,
    JsonFileStorage,
    KeyValueStorageInterface,
    NotFoundError,
    StorageConnectionError,
    StorageError,
)

__all__ = [
    # Storage services
    "InMemoryStorage",
    "JsonFileStorage",
    "KeyValueStorageInterface",
    "NotFoundError",
    "StorageConnectionError",
    "StorageError",
]
