"""
Local JSON File Storage Implementation

DESIGN DECISION: One JSON file per slot in a data directory because:
1. The user can open and back up their data with any text editor
2. No database setup required
3. Slots are independent, so one corrupt file never hides the others

TRADEOFFS:
- Full rewrite on every save (fine at personal-finance volumes)
- No cross-slot transactions (the entity store writes all affected
  slots back to back and owns the in-memory truth)
"""

import os
import tempfile
from pathlib import Path
from typing import Optional

import structlog
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from smartspend.config import get_settings
from smartspend.services.storage.interface import (
    KeyValueStorageInterface,
    StorageConnectionError,
    StorageError,
)


logger = structlog.get_logger(__name__)


class JsonFileStorage(KeyValueStorageInterface):
    """
    Filesystem implementation of snapshot storage.

    Writes go to a temp file in the same directory and are moved
    into place, so a crash mid-write leaves the previous snapshot.
    """

    SUFFIX = ".json"

    def __init__(self, data_dir: Optional[str | Path] = None):
        self._data_dir = Path(data_dir or get_settings().storage.data_dir)
        try:
            self._data_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageConnectionError(
                f"Cannot create data directory {self._data_dir}: {e}"
            )

    @property
    def data_dir(self) -> Path:
        return self._data_dir

    def _path_for(self, key: str) -> Path:
        if not key or "/" in key or "\\" in key or key.startswith("."):
            raise StorageError(f"Invalid storage key: {key!r}")
        return self._data_dir / f"{key}{self.SUFFIX}"

    @retry(
        retry=retry_if_exception_type(OSError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.1, min=0.1, max=1),
        reraise=True,
    )
    def _read(self, path: Path) -> str:
        return path.read_text(encoding="utf-8")

    @retry(
        retry=retry_if_exception_type(OSError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.1, min=0.1, max=1),
        reraise=True,
    )
    def _write(self, path: Path, value: str) -> None:
        fd, tmp_name = tempfile.mkstemp(
            dir=self._data_dir,
            prefix=f".{path.stem}.",
            suffix=".tmp",
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(value)
            os.replace(tmp_name, path)
        except OSError:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def load(self, key: str) -> Optional[str]:
        path = self._path_for(key)
        if not path.exists():
            return None
        try:
            return self._read(path)
        except OSError as e:
            raise StorageError(f"Failed to read {path}: {e}")

    def save(self, key: str, value: str) -> None:
        path = self._path_for(key)
        try:
            self._write(path, value)
        except OSError as e:
            raise StorageError(f"Failed to write {path}: {e}")
        logger.debug("slot_saved", key=key, size=len(value))

    def delete(self, key: str) -> bool:
        path = self._path_for(key)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StorageError(f"Failed to delete {path}: {e}")
        return True

    def keys(self) -> list[str]:
        return sorted(p.stem for p in self._data_dir.glob(f"*{self.SUFFIX}"))
