"""
Storage Services Package

Provides the abstract snapshot-storage interface and its implementations.
Currently implements local JSON files, but designed to be swappable.
"""

from smartspend.services.storage.interface import (
    KeyValueStorageInterface,
    NotFoundError,
    StorageConnectionError,
    StorageError,
)
from smartspend.services.storage.json_files import JsonFileStorage
from smartspend.services.storage.memory import InMemoryStorage

__all__ = [
    # Interfaces
    "KeyValueStorageInterface",
    # Exceptions
    "NotFoundError",
    "StorageConnectionError",
    "StorageError",
    # Implementations
    "InMemoryStorage",
    "JsonFileStorage",
]
