"""Local key/value persistence for PrintStation."""

import copy
import json
import logging
import os
import threading
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

# Default storage location
DEFAULT_STORE_DIR = Path.home() / ".config" / "printstation"
DEFAULT_STORE_FILE = DEFAULT_STORE_DIR / "store.json"


class MemoryStore:
    """In-process key/value store.

    Values are deep-copied on the way in and out so callers never share
    mutable state with the store.
    """

    def __init__(self, data: dict | None = None):
        self._data: dict[str, Any] = copy.deepcopy(data) if data else {}
        self._lock = threading.RLock()

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            if key in self._data:
                return copy.deepcopy(self._data[key])
            return default

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._data[key] = copy.deepcopy(value)
            self._persist()

    def delete(self, key: str) -> bool:
        with self._lock:
            if key not in self._data:
                return False
            del self._data[key]
            self._persist()
            return True

    def has(self, key: str) -> bool:
        with self._lock:
            return key in self._data

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._data)

    def clear(self) -> None:
        with self._lock:
            self._data = {}
            self._persist()

    def _persist(self) -> None:
        """Hook for durable subclasses."""


class JsonStore(MemoryStore):
    """Key/value store persisted to a single JSON file.

    The whole file is rewritten on every change. It holds the API key and
    token, so it is created with 0600 permissions.
    """

    def __init__(self, path: Path | None = None):
        """Load the store from disk.

        Args:
            path: JSON file path (default: ~/.config/printstation/store.json).
        """
        super().__init__()
        self.path = Path(path) if path else DEFAULT_STORE_FILE
        self._load()

    def _load(self) -> None:
        if not self.path.exists():
            logger.debug(f"No store at {self.path}, starting empty")
            return

        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Could not read store {self.path}, starting empty: {e}")
            return

        if isinstance(data, dict):
            self._data = data
        else:
            logger.warning(f"Store {self.path} does not contain an object, starting empty")

    def _persist(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(self._data, f, indent=2, ensure_ascii=False)
        os.chmod(tmp_path, 0o600)
        os.replace(tmp_path, self.path)
