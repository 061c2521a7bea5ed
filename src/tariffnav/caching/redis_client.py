"""Redis-backed chapter cache for multi-worker deployments.

Cache Keys:
- tariffnav:{namespace}:v{version}:{key} → JSON payload (TTL configurable)
- tariffnav:{namespace}:version → invalidation counter
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

import redis

logger = logging.getLogger(__name__)


class RedisChapterCache:
    """Shared cache with TTL expiry and version-stamped invalidation."""

    def __init__(
        self,
        url: str,
        *,
        ttl_seconds: int = 3600,
        namespace: str = "chapters",
        client: Optional[redis.Redis] = None,
    ) -> None:
        self.ttl_seconds = max(1, int(ttl_seconds))
        self.namespace = namespace
        self._client = client or redis.from_url(
            url,
            decode_responses=True,
            socket_keepalive=True,
            socket_connect_timeout=5,
            socket_timeout=5,
            retry_on_timeout=True,
        )

    def _version_key(self) -> str:
        return f"tariffnav:{self.namespace}:version"

    def _version(self) -> int:
        raw = self._client.get(self._version_key())
        return int(raw) if raw else 0

    def _key(self, key: str) -> str:
        return f"tariffnav:{self.namespace}:v{self._version()}:{key}"

    def get(self, key: str) -> Optional[Any]:
        try:
            data = self._client.get(self._key(key))
        except redis.RedisError as exc:
            logger.warning("Chapter cache read failed for %s: %s", key, exc)
            return None
        if not data:
            return None
        try:
            return json.loads(data)
        except (json.JSONDecodeError, TypeError):
            logger.warning("Discarding undecodable cache entry for %s", key)
            return None

    def set(self, key: str, value: Any) -> None:
        try:
            self._client.setex(self._key(key), self.ttl_seconds, json.dumps(value))
        except redis.RedisError as exc:
            logger.warning("Chapter cache write skipped for %s: %s", key, exc)

    def invalidate(self) -> None:
        self._client.incr(self._version_key())

    def health_check(self) -> bool:
        try:
            return bool(self._client.ping())
        except redis.RedisError:
            return False
