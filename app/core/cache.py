"""
Optional Redis cache for latest-reading lookups.

Best-effort only: when Redis is not configured or unreachable, callers read straight from
Mongo. Writes bump a per-subject version counter instead of deleting keys, so stale
entries simply stop being addressed and expire on their TTL.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, TypeVar

import redis.asyncio as redis
import structlog
from pydantic import TypeAdapter

from app.core.config import settings

logger = structlog.get_logger(__name__)

T = TypeVar("T")

_redis_client: redis.Redis | None = None


async def init_cache() -> redis.Redis | None:
    """Create the shared Redis client; returns None when caching is disabled or down."""
    global _redis_client

    if not settings.REDIS_URL:
        return None

    client = redis.from_url(settings.REDIS_URL, decode_responses=False)
    try:
        await client.ping()
    except Exception as exc:  # pragma: no cover - best-effort init
        logger.warning("cache_ping_failed", error=str(exc), url=settings.REDIS_URL)
        return None

    _redis_client = client
    return client


async def close_cache() -> None:
    global _redis_client

    if _redis_client:
        await _redis_client.close()
        _redis_client = None


def get_cache_client() -> redis.Redis | None:
    return _redis_client


def set_cache_client(client: Any) -> None:
    global _redis_client
    _redis_client = client


def _version_key(subject_id: int | str) -> str:
    return f"readings:version:{subject_id}"


async def bump_version(subject_id: int | str) -> None:
    client = _redis_client
    if client is None:
        return
    try:
        await client.incr(_version_key(subject_id))
    except Exception as exc:  # pragma: no cover - cache is best-effort
        logger.warning("cache_invalidate_failed", subject_id=subject_id, error=str(exc))


async def get_version(subject_id: int | str) -> int:
    client = _redis_client
    if client is None:
        return 0
    try:
        value = await client.get(_version_key(subject_id))
    except Exception as exc:  # pragma: no cover - cache is best-effort
        logger.warning("cache_version_read_failed", subject_id=subject_id, error=str(exc))
        return 0
    return int(value) if value is not None else 0


async def cached_json(
    key: str,
    loader: Callable[[], Awaitable[T]],
    adapter: TypeAdapter[T],
    ttl_seconds: int | None = None,
) -> T:
    """Return the cached value for `key`, or run `loader` and cache what it returns."""
    client = _redis_client
    if client is None:
        return await loader()

    try:
        raw = await client.get(key)
    except Exception as exc:  # pragma: no cover - cache is best-effort
        logger.warning("cache_read_failed", key=key, error=str(exc))
        raw = None

    if raw is not None:
        try:
            return adapter.validate_json(raw)
        except Exception as exc:
            logger.warning("cache_deserialize_failed", key=key, error=str(exc))

    result = await loader()
    try:
        await client.set(
            key,
            adapter.dump_json(result),
            ex=ttl_seconds or settings.VITALS_CACHE_TTL_SECONDS,
        )
    except Exception as exc:  # pragma: no cover - cache is best-effort
        logger.warning("cache_write_failed", key=key, error=str(exc))
    return result
