"""
Token Cache

Caches validated token -> caller id pairs so that repeated requests with the
same token skip the identity provider round trip. Keys are SHA-256 digests of
the token; raw tokens are never stored.

Two stores are supported, selected by CACHE_STORE:
- memory: per-process dict with expiry timestamps
- redis: shared redis.asyncio client with native key expiry
"""

import time
import hashlib
import logging
from typing import Dict, Optional, Protocol, Tuple

import redis.asyncio as redis

from utils.config import CacheConfig

logger = logging.getLogger(__name__)

KEY_PREFIX = "authz:token:"


def token_cache_key(token: str) -> str:
    return KEY_PREFIX + hashlib.sha256(token.encode("utf-8")).hexdigest()


class TokenCache(Protocol):
    async def get(self, token: str) -> Optional[str]:
        ...

    async def set(self, token: str, caller_id: str, ttl: int) -> None:
        ...


class MemoryTokenCache:
    """
    In-process token cache.

    Expired entries are evicted when read and swept on every write, so the
    map never holds more than the tokens still within their TTL.
    """

    def __init__(self, clock=time.monotonic):
        self._entries: Dict[str, Tuple[str, float]] = {}
        self._clock = clock

    async def get(self, token: str) -> Optional[str]:
        key = token_cache_key(token)
        entry = self._entries.get(key)
        if entry is None:
            return None

        caller_id, expires_at = entry
        if self._clock() >= expires_at:
            self._entries.pop(key, None)
            return None
        return caller_id

    async def set(self, token: str, caller_id: str, ttl: int) -> None:
        now = self._clock()
        self._evict_expired(now)
        if ttl <= 0:
            return
        self._entries[token_cache_key(token)] = (caller_id, now + ttl)

    def _evict_expired(self, now: float) -> None:
        expired = [key for key, (_, expires_at) in self._entries.items() if now >= expires_at]
        for key in expired:
            del self._entries[key]

    def __len__(self) -> int:
        return len(self._entries)


class RedisTokenCache:
    """
    Redis-backed token cache.

    Redis errors are logged and treated as a cache miss; validation then
    falls through to the identity provider.
    """

    def __init__(self, redis_url: str, redis_client=None):
        if redis_client is None:
            redis_client = redis.from_url(
                redis_url,
                decode_responses=True,
                socket_timeout=5,
                socket_connect_timeout=5
            )
        self.redis_client = redis_client

    async def get(self, token: str) -> Optional[str]:
        try:
            return await self.redis_client.get(token_cache_key(token))
        except redis.RedisError as e:
            logger.error(f"Token cache read failed, bypassing cache: error={e}")
            return None

    async def set(self, token: str, caller_id: str, ttl: int) -> None:
        if ttl <= 0:
            return
        try:
            await self.redis_client.set(token_cache_key(token), caller_id, ex=ttl)
        except redis.RedisError as e:
            logger.error(f"Token cache write failed: error={e}")

    async def close(self) -> None:
        await self.redis_client.aclose()


def build_token_cache(config: CacheConfig) -> TokenCache:
    """Create the token cache selected by the cache configuration."""
    if config.store == "redis":
        logger.info(f"Token cache: redis, ttl={config.ttl}s")
        return RedisTokenCache(config.redis_url)

    logger.info(f"Token cache: memory, ttl={config.ttl}s")
    return MemoryTokenCache()
