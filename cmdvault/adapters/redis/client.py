"""Redis Adapter - Connection for the active key version cache."""
import logging
from typing import Optional

import redis

logger = logging.getLogger(__name__)


def create_cache_client(redis_url: Optional[str]) -> Optional[redis.Redis]:
    """Build a synchronous client, or None when no URL is configured.

    The client exposes ``get``/``setex``/``delete``, which is all KeyManager uses.
    """
    if not redis_url:
        return None
    client = redis.Redis.from_url(redis_url, decode_responses=True, socket_timeout=1.0)
    logger.info("Key version cache enabled (redis)")
    return client


def close_cache_client(client: Optional[redis.Redis]) -> None:
    if client is not None:
        client.close()
