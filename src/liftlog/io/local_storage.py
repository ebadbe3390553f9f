"""
Synchronous key-value persistence local to one device.

Plays the role of the browser's localStorage: survives a restart of the
process, is owned by a single SessionBuffer, and is not synchronised
anywhere.
"""

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from tempfile import NamedTemporaryFile

LOGGER = logging.getLogger(__name__)


class LocalStorage(ABC):
    """getItem / setItem / removeItem over string values."""

    @abstractmethod
    def get_item(self, key: str) -> str | None:
        """Return the stored string or None."""

    @abstractmethod
    def set_item(self, key: str, value: str) -> None:
        """Store *value* under *key*."""

    @abstractmethod
    def remove_item(self, key: str) -> None:
        """Delete *key*; missing keys are ignored."""


class MemoryLocalStorage(LocalStorage):
    """Dict-backed storage; shared between instances only by passing it around."""

    def __init__(self, items: dict[str, str] | None = None):
        self._items: dict[str, str] = dict(items or {})

    def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = str(value)

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._items)


class FileLocalStorage(LocalStorage):
    """
    All keys in one JSON object file, rewritten atomically on every change.

    An unreadable file is treated as empty; the next write replaces it.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def _load(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            LOGGER.warning("Ignoring unreadable local storage %s: %s", self.path, e)
            return {}
        if not isinstance(data, dict):
            LOGGER.warning("Ignoring local storage %s: not a JSON object", self.path)
            return {}
        return {str(k): str(v) for k, v in data.items()}

    def _save(self, items: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with NamedTemporaryFile(
            "w", dir=self.path.parent, delete=False, suffix=".tmp", encoding="utf-8"
        ) as tmp:
            json.dump(items, tmp, indent=2, sort_keys=True)
        Path(tmp.name).replace(self.path)

    def get_item(self, key: str) -> str | None:
        return self._load().get(key)

    def set_item(self, key: str, value: str) -> None:
        items = self._load()
        items[key] = str(value)
        self._save(items)

    def remove_item(self, key: str) -> None:
        items = self._load()
        if key in items:
            del items[key]
            self._save(items)
