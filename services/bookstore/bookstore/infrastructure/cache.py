import json
import logging
from typing import Any, Optional

import redis
from cachetools import TTLCache

from bookstore.core_settings import get_settings

logger = logging.getLogger(__name__)


class ResponseCache:
    """Read-through cache for listing responses.

    Values go to redis when ``REDIS_URL`` is configured and reachable, and to an
    in-process ``TTLCache`` otherwise.
    """

    def __init__(self, ttl: int = 60, redis_url: Optional[str] = None, maxsize: int = 1024):
        self.ttl = ttl
        self.local = TTLCache(maxsize=maxsize, ttl=max(ttl, 1))
        self.redis_client: Optional[redis.Redis] = None
        if redis_url:
            try:
                client = redis.from_url(redis_url, decode_responses=True)
                client.ping()
                self.redis_client = client
            except redis.RedisError as exc:
                logger.warning(f"Redis unavailable, using local cache: {exc}")

    @property
    def enabled(self) -> bool:
        return self.ttl > 0

    def get(self, key: str) -> Any:
        if not self.enabled:
            return None
        if self.redis_client:
            try:
                raw = self.redis_client.get(key)
                if raw is not None:
                    return json.loads(raw)
            except redis.RedisError:
                logger.debug("Redis read failed for %s", key)
        return self.local.get(key)

    def set(self, key: str, value: Any) -> None:
        if not self.enabled:
            return
        if self.redis_client:
            try:
                self.redis_client.setex(key, self.ttl, json.dumps(value, default=str))
                return
            except redis.RedisError:
                logger.debug("Redis write failed for %s", key)
        self.local[key] = value

    def clear(self, prefix: str = "") -> None:
        for key in tuple(self.local.keys()):
            if key.startswith(prefix):
                self.local.pop(key, None)
        if self.redis_client:
            try:
                for key in self.redis_client.scan_iter(match=f"{prefix}*"):
                    self.redis_client.delete(key)
            except redis.RedisError:
                logger.debug("Redis purge failed for prefix %s", prefix)


_cache: Optional[ResponseCache] = None


def get_cache() -> ResponseCache:
    global _cache
    if _cache is None:
        settings = get_settings()
        _cache = ResponseCache(ttl=settings.CATALOG_CACHE_TTL, redis_url=settings.REDIS_URL)
    return _cache
