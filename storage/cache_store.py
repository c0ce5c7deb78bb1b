"""Key/value stores backing the concert cache and archive."""
import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Raised when a store cannot read or write a value."""


class CacheStore(ABC):
    """Durable string key/value store.

    Every ``set`` replaces the whole value for its key.
    """

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the value stored under ``key``, or None."""

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove ``key``; missing keys are ignored."""


class MemoryCacheStore(CacheStore):
    """In-process store, used in tests and when nothing durable is configured."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self):
        return list(self._data.keys())


class JsonFileCacheStore(CacheStore):
    """Store persisted as a single JSON object on disk."""

    def __init__(self, path: str):
        """
        Initialize the file store.

        Args:
            path: Location of the JSON file (created on first write)
        """
        self.path = Path(path)

    def _load(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding='utf-8'))
        except (OSError, ValueError) as e:
            raise StorageError(f"Cannot read cache file {self.path}: {e}") from e
        if not isinstance(data, dict):
            raise StorageError(f"Cache file {self.path} does not hold a JSON object")
        return data

    def _save(self, data: Dict[str, str]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            # Write to a sibling temp file first so readers never see a partial file
            fd, tmp_name = tempfile.mkstemp(dir=str(self.path.parent),
                                            prefix=self.path.name, suffix='.tmp')
            with os.fdopen(fd, 'w', encoding='utf-8') as handle:
                json.dump(data, handle, ensure_ascii=False)
            os.replace(tmp_name, self.path)
        except OSError as e:
            raise StorageError(f"Cannot write cache file {self.path}: {e}") from e

    def get(self, key: str) -> Optional[str]:
        value = self._load().get(key)
        return value if isinstance(value, str) else None

    def set(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        self._save(data)

    def delete(self, key: str) -> None:
        data = self._load()
        if key in data:
            del data[key]
            self._save(data)
