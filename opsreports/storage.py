"""Local key/value storage for report templates, history and console data.

Values are strings, the way the browser store keeps them. Collections are
written through :class:`CollectionCodec`, which wraps the JSON array in a
versioned envelope and validates it again on the way back in.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

logger = logging.getLogger(__name__)


class KeyValueStore:
    """Minimal string store interface."""

    def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set(self, key: str, value: str) -> None:
        raise NotImplementedError

    def remove(self, key: str) -> None:
        raise NotImplementedError


class MemoryStore(KeyValueStore):
    """In-process store, used by tests and throwaway sessions."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileStore(KeyValueStore):
    """
    Store backed by a single JSON object on disk.

    Every write rewrites the whole file through a temporary sibling and an
    atomic replace, so a crash leaves either the old or the new content.
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    def _load(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with self.path.open("r", encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, ValueError):
            logger.error("Store file %s is unreadable, starting empty", self.path, exc_info=True)
            return {}
        if not isinstance(data, dict):
            logger.error("Store file %s does not hold a JSON object, starting empty", self.path)
            return {}
        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    def _dump(self, data: Dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=".store-", suffix=".json", dir=str(self.path.parent))
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(data, fh, ensure_ascii=False)
            os.replace(tmp_name, self.path)
        except OSError:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def get(self, key: str) -> Optional[str]:
        return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        self._dump(data)

    def remove(self, key: str) -> None:
        data = self._load()
        if key in data:
            del data[key]
            self._dump(data)


class CollectionCodec:
    """
    Encode and decode one named collection of JSON objects.

    Written form: ``{"version": N, "items": [...]}``. Bare arrays from older
    writers are read as version 0 and migrated on the next write. Unknown
    versions and unparsable blobs decode to an empty collection; items that
    are not objects or miss a required key are dropped.
    """

    VERSION = 1

    def __init__(self, key: str, required: Iterable[str] = ()):
        self.key = key
        self.required = tuple(required)

    def encode(self, items: List[Dict[str, Any]]) -> str:
        return json.dumps({"version": self.VERSION, "items": items}, ensure_ascii=False)

    def decode(self, raw: Optional[str]) -> List[Dict[str, Any]]:
        if not raw:
            return []
        try:
            payload = json.loads(raw)
        except ValueError:
            logger.error("Error loading %s: stored value is not valid JSON", self.key, exc_info=True)
            return []

        if isinstance(payload, list):
            items = payload
        elif isinstance(payload, dict):
            version = payload.get("version")
            if version != self.VERSION:
                logger.error("Error loading %s: unsupported collection version %r", self.key, version)
                return []
            items = payload.get("items")
            if not isinstance(items, list):
                logger.error("Error loading %s: envelope has no item list", self.key)
                return []
        else:
            logger.error("Error loading %s: unexpected %s payload", self.key, type(payload).__name__)
            return []

        valid = [item for item in items if self._is_valid(item)]
        if len(valid) != len(items):
            logger.warning("Dropped %d malformed record(s) from %s", len(items) - len(valid), self.key)
        return valid

    def _is_valid(self, item: Any) -> bool:
        return isinstance(item, dict) and all(key in item for key in self.required)

    def read(self, store: KeyValueStore) -> List[Dict[str, Any]]:
        return self.decode(store.get(self.key))

    def write(self, store: KeyValueStore, items: List[Dict[str, Any]]) -> None:
        store.set(self.key, self.encode(items))
