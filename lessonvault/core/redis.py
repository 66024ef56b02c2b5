"""
Process-wide async Redis connection backing the stream token denylist.
Revocation is optional: with no redis_url, or when the server does not answer
the startup ping, every accessor returns None and streams rely on expiry alone.
"""
import logging
from urllib.parse import urlsplit

from redis.asyncio import Redis
from redis.exceptions import RedisError

from lessonvault.config import get_settings
from lessonvault.services.token_denylist import RedisTokenDenylist

logger = logging.getLogger(__name__)

_redis_client: Redis | None = None


def _redacted(url: str) -> str:
    """host:port/db only; credentials never reach the log."""
    parts = urlsplit(url)
    return f"{parts.hostname}:{parts.port or 6379}{parts.path}"


async def get_redis_client() -> Redis | None:
    global _redis_client
    if _redis_client is not None:
        return _redis_client
    url = get_settings().redis_url.strip()
    if not url:
        return None
    try:
        client = Redis.from_url(url, decode_responses=True)
        await client.ping()
    except (RedisError, OSError, ValueError) as e:
        logger.warning("Redis at %s unavailable, stream token revocation disabled: %s", _redacted(url), e)
        return None
    logger.info("Stream token denylist on Redis %s", _redacted(url))
    _redis_client = client
    return _redis_client


async def get_token_denylist() -> RedisTokenDenylist | None:
    client = await get_redis_client()
    return RedisTokenDenylist(client) if client is not None else None


async def close_redis() -> None:
    global _redis_client
    if _redis_client is None:
        return
    client, _redis_client = _redis_client, None
    try:
        await client.aclose()
    except RedisError as e:
        logger.warning("Redis close failed: %s", e)
