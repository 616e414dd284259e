"""Completion signals: the webhook marks a checkout session done, the poller reads the mark.

Stored in Redis when REDIS_URL is configured, otherwise in process memory.
"""

import logging
import time

from redis.asyncio import Redis as AsyncRedis
from redis.exceptions import RedisError

from storefront.config import get_settings
from storefront.constants import CHECKOUT_SIGNAL_PREFIX, CHECKOUT_SIGNAL_TTL

logger = logging.getLogger(__name__)

# In-memory fallback: session id -> monotonic expiry
_signals: dict[str, float] = {}


async def _get_redis() -> AsyncRedis | None:
    """Get async Redis client if REDIS_URL is configured."""
    settings = get_settings()
    if not settings.redis_url:
        return None
    try:
        return AsyncRedis.from_url(settings.redis_url)
    except ValueError as e:
        logger.warning(f"Invalid REDIS_URL, using in-memory signals: {e}")
        return None


def _cleanup_expired() -> None:
    now = time.monotonic()
    expired = [k for k, expiry in _signals.items() if expiry <= now]
    for k in expired:
        del _signals[k]


async def mark_completed(session_id: str) -> None:
    """Record that the webhook finished fulfilling this checkout session.

    Signal failures are logged and swallowed: the database is the source of
    truth and the poller falls back to it.
    """
    redis = await _get_redis()
    if redis:
        try:
            await redis.setex(f"{CHECKOUT_SIGNAL_PREFIX}{session_id}", CHECKOUT_SIGNAL_TTL, "completed")
        except RedisError as e:
            logger.warning(f"Could not publish completion signal for {session_id}: {e}")
        finally:
            await redis.aclose()
    else:
        _cleanup_expired()
        _signals[session_id] = time.monotonic() + CHECKOUT_SIGNAL_TTL


async def is_completed(session_id: str) -> bool:
    redis = await _get_redis()
    if redis:
        try:
            return bool(await redis.exists(f"{CHECKOUT_SIGNAL_PREFIX}{session_id}"))
        except RedisError as e:
            logger.warning(f"Could not read completion signal for {session_id}: {e}")
            return False
        finally:
            await redis.aclose()
    expiry = _signals.get(session_id)
    return expiry is not None and expiry > time.monotonic()


def clear() -> None:
    """Drop all in-memory signals."""
    _signals.clear()
