"""
Token-bucket rate limiting.

Each client identifier (user id when signed in, otherwise IP address)
owns one bucket per endpoint class. Buckets hold up to ``capacity``
tokens and refill continuously at ``capacity`` tokens per minute; every
request takes one token.

Buckets live in Redis when REDIS_URL is configured so limits hold across
workers, and in process memory otherwise.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

import redis.asyncio as aioredis
from fastapi import Request, Response, status
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware

from civic_issues.middleware.security import client_ip

logger = logging.getLogger(__name__)

AUTH_PATH_PREFIX = "/api/auth"
EXEMPT_PATHS = {"/", "/health", "/docs", "/openapi.json", "/redoc"}
REFILL_WINDOW_SECONDS = 60


@dataclass
class BucketResult:
    allowed: bool
    remaining: int
    retry_after: int


def refill(tokens: float, last: float, now: float, capacity: int) -> float:
    """Tokens in a bucket after refilling from ``last`` to ``now``."""
    rate = capacity / REFILL_WINDOW_SECONDS
    return min(float(capacity), tokens + max(0.0, now - last) * rate)


def retry_after_seconds(tokens: float, capacity: int) -> int:
    """Whole seconds until the bucket holds one token again."""
    rate = capacity / REFILL_WINDOW_SECONDS
    return max(1, int((1 - tokens) / rate) + 1)


class MemoryBucketStore:
    """
    Per-process bucket store.

    A bucket left idle for a full refill window is back at capacity, so it
    is dropped; a missing bucket starts full.
    """

    def __init__(self):
        # key -> (tokens, last refill time)
        self._buckets: Dict[str, Tuple[float, float]] = {}
        self._last_sweep: Optional[float] = None

    def _evict_idle(self, now: float) -> None:
        if self._last_sweep is not None and now - self._last_sweep < REFILL_WINDOW_SECONDS:
            return
        self._last_sweep = now
        idle = [key for key, (_, last) in self._buckets.items() if now - last >= REFILL_WINDOW_SECONDS]
        for key in idle:
            del self._buckets[key]

    @property
    def bucket_count(self) -> int:
        return len(self._buckets)

    async def take(self, key: str, capacity: int, now: Optional[float] = None) -> BucketResult:
        now = time.monotonic() if now is None else now
        self._evict_idle(now)
        tokens, last = self._buckets.get(key, (float(capacity), now))
        tokens = refill(tokens, last, now, capacity)

        if tokens < 1:
            self._buckets[key] = (tokens, now)
            return BucketResult(False, 0, retry_after_seconds(tokens, capacity))

        tokens -= 1
        self._buckets[key] = (tokens, now)
        return BucketResult(True, int(tokens), 0)

    async def close(self):
        self._buckets.clear()


# KEYS[1] bucket key; ARGV: capacity, refill rate per second, now, ttl
TAKE_SCRIPT = """
local bucket = redis.call('HMGET', KEYS[1], 'tokens', 'ts')
local capacity = tonumber(ARGV[1])
local rate = tonumber(ARGV[2])
local now = tonumber(ARGV[3])
local tokens = tonumber(bucket[1]) or capacity
local ts = tonumber(bucket[2]) or now
tokens = math.min(capacity, tokens + math.max(0, now - ts) * rate)
local allowed = 0
if tokens >= 1 then
  tokens = tokens - 1
  allowed = 1
end
redis.call('HSET', KEYS[1], 'tokens', tokens, 'ts', now)
redis.call('EXPIRE', KEYS[1], tonumber(ARGV[4]))
return {allowed, tostring(tokens)}
"""


class RedisBucketStore:
    """Bucket store shared through Redis; updates run atomically in a script."""

    KEY_PREFIX = "ratelimit:"

    def __init__(self, redis_url: str):
        self.redis = aioredis.from_url(redis_url, encoding="utf-8", decode_responses=True)

    async def take(self, key: str, capacity: int, now: Optional[float] = None) -> BucketResult:
        now = time.time() if now is None else now
        allowed, tokens = await self.redis.eval(
            TAKE_SCRIPT,
            1,
            f"{self.KEY_PREFIX}{key}",
            capacity,
            capacity / REFILL_WINDOW_SECONDS,
            now,
            REFILL_WINDOW_SECONDS * 2,
        )
        tokens = float(tokens)
        if int(allowed) == 1:
            return BucketResult(True, int(tokens), 0)
        return BucketResult(False, 0, retry_after_seconds(tokens, capacity))

    async def close(self):
        await self.redis.close()


def create_bucket_store(redis_url: Optional[str]):
    if redis_url:
        logger.info("Rate limiting with Redis bucket store")
        return RedisBucketStore(redis_url)
    logger.info("Rate limiting with in-memory bucket store")
    return MemoryBucketStore()


def rate_limit_identifier(request: Request) -> str:
    """User id when the session context identified one, otherwise the client IP."""
    user_id = getattr(request.state, "user_id", None)
    if user_id:
        return f"user:{user_id}"
    return f"ip:{client_ip(request)}"


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Token-bucket rate limiting with separate capacity for auth endpoints.

    Responds 429 with Retry-After when a bucket is empty. A Redis outage
    lets requests through rather than failing them.
    """

    def __init__(
        self,
        app,
        auth_requests_per_minute: int = 5,
        general_requests_per_minute: int = 100,
        store=None,
    ):
        """
        Args:
            app: ASGI application
            auth_requests_per_minute: Bucket capacity for /api/auth endpoints
            general_requests_per_minute: Bucket capacity for everything else
            store: Bucket store (default: in-memory)
        """
        super().__init__(app)
        self.auth_limit = auth_requests_per_minute
        self.general_limit = general_requests_per_minute
        self.store = store if store is not None else MemoryBucketStore()

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        path = request.url.path
        if path in EXEMPT_PATHS or request.method == "OPTIONS":
            return await call_next(request)

        is_auth = path.startswith(AUTH_PATH_PREFIX)
        limit = self.auth_limit if is_auth else self.general_limit
        identifier = rate_limit_identifier(request)
        key = f"{'auth' if is_auth else 'general'}:{identifier}"

        try:
            result = await self.store.take(key, limit)
        except RedisError as e:
            logger.warning(f"Rate limit store unavailable, allowing request: {e}")
            return await call_next(request)

        if not result.allowed:
            logger.warning(
                f"Rate limit exceeded for {identifier} on "
                f"{'auth' if is_auth else 'general'} endpoint: {path}"
            )
            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content={
                    "detail": f"Rate limit exceeded. Maximum {limit} requests per minute."
                },
                headers={
                    "Retry-After": str(result.retry_after),
                    "X-RateLimit-Limit": str(limit),
                    "X-RateLimit-Remaining": "0",
                }
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(limit)
        response.headers["X-RateLimit-Remaining"] = str(result.remaining)
        return response
