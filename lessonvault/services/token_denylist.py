"""
Redis denylist for stream tokens revoked before they expire (e.g. on logout).
Key: stream:revoked:{jti}, a plain string, TTL = the token's remaining lifetime,
so entries vanish once the token would have expired anyway.
Expiry stays the primary invalidation: lookup errors are logged and treated as
"not revoked", never raised to the stream request.
"""
import logging
from typing import Any

logger = logging.getLogger(__name__)

DENYLIST_KEY_PREFIX = "stream:revoked:"


def _key(jti: str) -> str:
    return f"{DENYLIST_KEY_PREFIX}{jti}"


class RedisTokenDenylist:
    """Async Redis denylist keyed by token id (jti)."""

    def __init__(self, redis_client: Any):
        self._redis = redis_client

    async def is_revoked(self, jti: str) -> bool:
        if not self._redis:
            return False
        try:
            return bool(await self._redis.exists(_key(jti)))
        except Exception as e:
            logger.warning("Stream token denylist lookup failed for %s: %s", jti, e, exc_info=False)
            return False

    async def revoke(self, jti: str, ttl_seconds: int) -> bool:
        """Store jti until the token expires. Returns False if nothing was stored."""
        if not self._redis or ttl_seconds <= 0:
            return False
        try:
            await self._redis.set(_key(jti), "1", ex=ttl_seconds)
            return True
        except Exception as e:
            logger.warning("Stream token revoke failed for %s: %s", jti, e, exc_info=False)
            return False
