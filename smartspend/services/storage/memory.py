"""In-memory storage backend for tests and throwaway sessions."""

from typing import Optional

from smartspend.services.storage.interface import KeyValueStorageInterface


class InMemoryStorage(KeyValueStorageInterface):
    """Dict-backed slots. Keeps a write log so tests can count saves."""

    def __init__(self, initial: Optional[dict[str, str]] = None):
        self._slots: dict[str, str] = dict(initial or {})
        self.writes: list[tuple[str, str]] = []

    def load(self, key: str) -> Optional[str]:
        return self._slots.get(key)

    def save(self, key: str, value: str) -> None:
        self._slots[key] = value
        self.writes.append((key, value))

    def delete(self, key: str) -> bool:
        return self._slots.pop(key, None) is not None

    def keys(self) -> list[str]:
        return sorted(self._slots)
