"""Short-lived store for generated plan previews awaiting confirmation.

Previews live under ``{prefix}{plan_id}`` for ``ttl_seconds``. Redis is used
when configured and reachable; otherwise entries stay in process memory.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

import redis

from core.cache_utils import TTLCache
from core.config import Settings

logger = logging.getLogger(__name__)


class PreviewCache:
    def __init__(
        self,
        redis_client: Optional[redis.Redis] = None,
        ttl_seconds: int = 3600,
        prefix: str = "preview:",
    ):
        self._redis = redis_client
        self.ttl_seconds = ttl_seconds
        self.prefix = prefix
        self._memory = TTLCache(ttl_seconds=ttl_seconds)

    @classmethod
    def from_settings(cls, settings: Settings) -> "PreviewCache":
        client = None
        if settings.redis_url:
            try:
                client = redis.Redis.from_url(settings.redis_url, decode_responses=True)
                client.ping()
                logger.info("preview_cache_backend", extra={"cache_backend": "redis"})
            except redis.RedisError as exc:
                logger.warning("Redis unavailable, using in-memory preview cache: %s", exc)
                client = None
        return cls(client, ttl_seconds=settings.preview_ttl_seconds, prefix=settings.preview_cache_prefix)

    @property
    def backend(self) -> str:
        return "redis" if self._redis is not None else "memory"

    def key(self, plan_id: int) -> str:
        return f"{self.prefix}{plan_id}"

    def put(self, plan_id: int, payload: dict[str, Any]) -> None:
        key = self.key(plan_id)
        if self._redis is not None:
            try:
                self._redis.setex(key, self.ttl_seconds, json.dumps(payload))
                return
            except redis.RedisError as exc:
                logger.warning("preview_cache_write_failed", extra={"key": key, "error": str(exc)})
        self._memory.set(key, json.dumps(payload))

    def get(self, plan_id: int) -> Optional[dict[str, Any]]:
        key = self.key(plan_id)
        raw = None
        if self._redis is not None:
            try:
                raw = self._redis.get(key)
            except redis.RedisError as exc:
                logger.warning("preview_cache_read_failed", extra={"key": key, "error": str(exc)})
        if raw is None:
            raw = self._memory.get(key)
        return json.loads(raw) if raw else None

    def delete(self, plan_id: int) -> None:
        key = self.key(plan_id)
        if self._redis is not None:
            try:
                self._redis.delete(key)
            except redis.RedisError as exc:
                logger.warning("preview_cache_delete_failed", extra={"key": key, "error": str(exc)})
        self._memory.delete(key)

    def close(self) -> None:
        if self._redis is not None:
            self._redis.close()
