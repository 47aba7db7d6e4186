"""Async Redis client used by the Redis-backed remote mirror.

Key layout, all under ``{prefix}:users:{uid}``:

- ``books``            set of document ids
- ``books:{doc_id}``   hash, one JSON-encoded value per record field
- ``settings``         hash holding the settings document
- ``changes``          pub/sub channel, one message per remote mutation
"""

import redis.asyncio as aioredis

from shelfsync.core.config import Settings


def create_redis(settings: Settings) -> aioredis.Redis:
    """Build a client for the configured Redis URL."""
    return aioredis.from_url(settings.redis_url, decode_responses=True)


def user_key(prefix: str, user_id: str, *parts: str) -> str:
    return ":".join([prefix, "users", user_id, *parts])
