from __future__ import annotations

from time import time
from typing import Optional


class TTLCache:
    """In-process key/value store with a per-entry time to live."""

    def __init__(self, ttl_seconds: int = 60):
        self.ttl = ttl_seconds
        self._store: dict[str, tuple[float, float, object]] = {}

    def set(self, key: str, value: object, ttl_seconds: Optional[int] = None) -> None:
        self._store[key] = (time(), float(ttl_seconds if ttl_seconds is not None else self.ttl), value)

    def get(self, key: str):
        item = self._store.get(key)
        if not item:
            return None
        ts, ttl, val = item
        if time() - ts > ttl:
            self._store.pop(key, None)
            return None
        return val

    def delete(self, key: str) -> None:
        self._store.pop(key, None)

    def clear(self) -> None:
        self._store.clear()

    def __len__(self) -> int:
        return len(self._store)
