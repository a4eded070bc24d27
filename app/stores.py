"""In-memory and file-backed key-value media for master data."""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Dict, List

logger = logging.getLogger("masters.medium")


class MemoryKeyValueMedium:
    def __init__(self, initial: Dict[str, str] | None = None) -> None:
        self._items: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._items.get(key)

    def set(self, key: str, value: str) -> None:
        if not isinstance(value, str):
            raise TypeError("medium values must be strings")
        self._items[key] = value

    def delete(self, key: str) -> None:
        self._items.pop(key, None)

    def keys(self, prefix: str = "") -> List[str]:
        return sorted(k for k in self._items if k.startswith(prefix))


class FileKeyValueMedium:
    """Flat string map persisted as one JSON object file.

    The whole file is rewritten on every ``set``/``delete`` through a temp
    file and ``os.replace``, so a crash leaves either the old or the new map.
    """

    def __init__(self, path: str | os.PathLike) -> None:
        self._path = Path(path)
        self._lock = threading.Lock()
        self._items: Dict[str, str] = self._load()

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> Dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8") or "{}")
        except ValueError as exc:
            logger.warning("medium_file_unreadable path=%s error=%s", self._path, exc)
            return {}
        if not isinstance(data, dict):
            logger.warning("medium_file_not_an_object path=%s", self._path)
            return {}
        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    def _flush(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=".masters-", suffix=".json", dir=str(self._path.parent))
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(self._items, handle, ensure_ascii=False, sort_keys=True)
            os.replace(tmp_name, self._path)
        except Exception:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._items.get(key)

    def set(self, key: str, value: str) -> None:
        if not isinstance(value, str):
            raise TypeError("medium values must be strings")
        with self._lock:
            self._items[key] = value
            self._flush()

    def delete(self, key: str) -> None:
        with self._lock:
            if key in self._items:
                del self._items[key]
                self._flush()

    def keys(self, prefix: str = "") -> List[str]:
        with self._lock:
            return sorted(k for k in self._items if k.startswith(prefix))

    def reload(self) -> None:
        with self._lock:
            self._items = self._load()
