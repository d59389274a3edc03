"""Entity store package."""

from smartspend.store.entity_store import (
    Collection,
    EntityStore,
    StoreSnapshot,
    default_for,
    default_transactions,
)

__all__ = [
    "Collection",
    "EntityStore",
    "StoreSnapshot",
    "default_for",
    "default_transactions",
]
