"""
Rate Limiter - Redis sorted-set sliding window.

Each request adds a member scored by its timestamp (ms); members older
than the window are trimmed before counting. When Redis is unreachable
the limiter fails open.

The same Redis connection also backs short-lived OAuth state values.
"""

import math
import time
import uuid
from typing import Optional, Tuple

import redis
from fastapi import HTTPException, Request

from app.core.config import get_settings
from app.core.logging_config import get_logger

settings = get_settings()
logger = get_logger(__name__)

RATE_LIMIT_PREFIX = "rate_limit:"
OAUTH_STATE_PREFIX = "oauth_state:"
OAUTH_STATE_TTL = 600

# name -> (limit, window seconds)
RATE_LIMITS = {
    "auth": (10, 60),
    "otp": (5, 300),
    "ai": (20, 60),
    "upload": (10, 60),
    "api": (100, 60),
}


# Singleton client
_redis_client: Optional[redis.Redis] = None


def get_redis() -> redis.Redis:
    global _redis_client
    if _redis_client is None:
        _redis_client = redis.Redis.from_url(
            settings.redis_url,
            decode_responses=True,
            socket_connect_timeout=2,
            socket_timeout=2,
        )
    return _redis_client


def test_redis_connection() -> bool:
    try:
        return bool(get_redis().ping())
    except redis.RedisError as e:
        logger.warning(f"Redis connection failed: {e}")
        return False


class RateLimiter:

    def __init__(self, client: Optional[redis.Redis] = None):
        self._client = client

    @property
    def client(self) -> redis.Redis:
        return self._client or get_redis()

    def check(self, identifier: str, limit: int, window_seconds: int) -> Tuple[bool, int, float]:
        """
        Record one hit for `identifier`.

        Returns (allowed, remaining, reset_at) where reset_at is a unix
        timestamp in seconds.
        """
        key = f"{RATE_LIMIT_PREFIX}{identifier}"
        now_ms = int(time.time() * 1000)
        window_ms = window_seconds * 1000
        reset_at = (now_ms + window_ms) / 1000

        try:
            pipe = self.client.pipeline()
            pipe.zremrangebyscore(key, 0, now_ms - window_ms)
            pipe.zcard(key)
            pipe.zadd(key, {f"{now_ms}-{uuid.uuid4().hex[:8]}": now_ms})
            pipe.expire(key, window_seconds)
            results = pipe.execute()
        except redis.RedisError as e:
            logger.warning(f"Rate limit check failed, allowing request: {e}")
            return True, limit - 1, reset_at

        current = int(results[1] or 0)
        allowed = current < limit
        remaining = max(0, limit - current - 1)
        return allowed, remaining, reset_at

    def reset(self, identifier: str) -> bool:
        try:
            return bool(self.client.delete(f"{RATE_LIMIT_PREFIX}{identifier}"))
        except redis.RedisError as e:
            logger.warning(f"Failed to reset rate limit for {identifier}: {e}")
            return False


def get_client_identifier(request: Request) -> str:
    """
    The address the rate limits are keyed on.

    X-Forwarded-For is only read when the direct peer is a configured proxy;
    the rightmost hop that is not one of our proxies is the client.
    """
    peer = request.client.host if request.client else "unknown"
    trusted = set(settings.trusted_proxies)
    forwarded = request.headers.get("x-forwarded-for")
    if not forwarded or peer not in trusted:
        return peer
    for hop in reversed([h.strip() for h in forwarded.split(",") if h.strip()]):
        if hop not in trusted:
            return hop
    return peer


def rate_limit(name: str, limit: int = None, window_seconds: int = None):
    """
    FastAPI dependency factory.

    Usage:
        @router.post("/otp/send", dependencies=[Depends(rate_limit("otp"))])
    """
    default_limit, default_window = RATE_LIMITS.get(name, RATE_LIMITS["api"])
    limit = limit or default_limit
    window_seconds = window_seconds or default_window

    def dependency(request: Request) -> None:
        if not settings.rate_limit_enabled:
            return
        identifier = f"{name}:{get_client_identifier(request)}"
        allowed, _, reset_at = RateLimiter().check(identifier, limit, window_seconds)
        if not allowed:
            retry_after = max(1, math.ceil(reset_at - time.time()))
            logger.info(f"Rate limit exceeded for {identifier}")
            raise HTTPException(
                status_code=429,
                detail="Too many requests. Please try again later.",
                headers={"Retry-After": str(retry_after)},
            )

    return dependency


# ============================================================
# OAUTH STATE
# ============================================================

def store_oauth_state(state: str, company_id: str, provider: str) -> bool:
    try:
        get_redis().setex(f"{OAUTH_STATE_PREFIX}{state}", OAUTH_STATE_TTL, f"{company_id}:{provider}")
        return True
    except redis.RedisError as e:
        logger.error(f"Could not store OAuth state: {e}")
        return False


def consume_oauth_state(state: str) -> Optional[str]:
    """Return the "company_id:provider" value bound to `state` and delete it."""
    key = f"{OAUTH_STATE_PREFIX}{state}"
    try:
        pipe = get_redis().pipeline()
        pipe.get(key)
        pipe.delete(key)
        value, _ = pipe.execute()
        return value
    except redis.RedisError as e:
        logger.error(f"Could not read OAuth state: {e}")
        return None
