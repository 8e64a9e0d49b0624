"""
Tests for the HTTP middleware stack.

Tests cover:
- Token-bucket math and the in-memory store
- Rate limiting responses, per-client buckets and Redis fail-open
- Security headers, request size limit and session context
"""

import uuid
import pytest
from fastapi import FastAPI, Request
from httpx import ASGITransport, AsyncClient
from redis.exceptions import ConnectionError as RedisConnectionError

from civic_issues.config import settings
from civic_issues.middleware import (
    MemoryBucketStore,
    RateLimitMiddleware,
    RequestLoggingMiddleware,
    RequestSizeLimitMiddleware,
    SecurityHeadersMiddleware,
    SessionContextMiddleware,
    create_bucket_store,
)
from civic_issues.middleware.ratelimit import refill, retry_after_seconds
from civic_issues.security import create_access_token


def build_app(**rate_limits) -> FastAPI:
    app = FastAPI()

    @app.get("/api/ping")
    async def ping(request: Request):
        return {"user_id": request.state.user_id, "role": request.state.role}

    @app.post("/api/auth/login")
    async def login():
        return {"ok": True}

    @app.post("/api/echo")
    async def echo(request: Request):
        return {"size": len(await request.body())}

    @app.get("/health")
    async def health():
        return {"status": "healthy"}

    # Last added runs first
    app.add_middleware(RateLimitMiddleware, **rate_limits)
    app.add_middleware(SessionContextMiddleware)
    app.add_middleware(RequestSizeLimitMiddleware, max_size=100)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    return app


def http_client(app: FastAPI) -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


def sign_in(client: AsyncClient, role: str = "citizen") -> None:
    client.cookies.clear()
    token = create_access_token(uuid.uuid4(), f"{role}@example.com", role, None)
    client.cookies.set(settings.AUTH_COOKIE_NAME, token)


class FailingStore:
    async def take(self, key, capacity, now=None):
        raise RedisConnectionError("Connection refused")


@pytest.mark.services
class TestBucketMath:

    def test_refill_is_linear_and_capped(self):
        assert refill(0.0, 0.0, 30.0, 60) == 30.0
        assert refill(50.0, 0.0, 30.0, 60) == 60.0
        assert refill(10.0, 5.0, 5.0, 60) == 10.0

    def test_retry_after(self):
        assert retry_after_seconds(0.0, 60) == 2
        assert retry_after_seconds(0.5, 60) == 1
        assert retry_after_seconds(0.0, 6) >= 10

    def test_create_bucket_store(self):
        assert isinstance(create_bucket_store(None), MemoryBucketStore)


@pytest.mark.asyncio
@pytest.mark.services
class TestMemoryBucketStore:

    async def test_drains_and_refills(self):
        store = MemoryBucketStore()

        results = [await store.take("ip:1", 60, now=100.0) for _ in range(61)]

        assert all(result.allowed for result in results[:60])
        assert results[59].remaining == 0
        assert results[60].allowed is False
        assert results[60].retry_after == 2

        later = await store.take("ip:1", 60, now=102.0)
        assert later.allowed is True

    async def test_keys_are_independent(self):
        store = MemoryBucketStore()
        await store.take("ip:1", 1, now=0.0)

        assert (await store.take("ip:1", 1, now=0.0)).allowed is False
        assert (await store.take("ip:2", 1, now=0.0)).allowed is True

    async def test_idle_buckets_are_evicted(self):
        store = MemoryBucketStore()
        for n in range(100):
            await store.take(f"ip:{n}", 60, now=0.0)
        await store.take("ip:busy", 60, now=30.0)

        assert store.bucket_count == 101

        result = await store.take("ip:busy", 60, now=60.0)

        assert store.bucket_count == 1
        assert result.allowed is True
        assert (await store.take("ip:0", 60, now=60.0)).remaining == 59


@pytest.mark.asyncio
@pytest.mark.api
class TestRateLimitMiddleware:

    async def test_auth_endpoints_have_their_own_limit(self):
        app = build_app(auth_requests_per_minute=2, general_requests_per_minute=50)

        async with http_client(app) as client:
            statuses = [(await client.post("/api/auth/login")).status_code for _ in range(3)]
            general = await client.get("/api/ping")

        assert statuses == [200, 200, 429]
        assert general.status_code == 200
        assert general.headers["X-RateLimit-Limit"] == "50"
        assert general.headers["X-RateLimit-Remaining"] == "49"

    async def test_limited_response(self):
        app = build_app(auth_requests_per_minute=1, general_requests_per_minute=1)

        async with http_client(app) as client:
            await client.get("/api/ping")
            response = await client.get("/api/ping")

        assert response.status_code == 429
        assert int(response.headers["Retry-After"]) >= 1
        assert response.headers["X-RateLimit-Remaining"] == "0"
        assert "Rate limit exceeded" in response.json()["detail"]

    async def test_signed_in_users_get_separate_buckets(self):
        app = build_app(auth_requests_per_minute=1, general_requests_per_minute=1)

        async with http_client(app) as client:
            sign_in(client)
            first = await client.get("/api/ping")
            sign_in(client)
            second = await client.get("/api/ping")
            client.cookies.clear()
            anonymous = await client.get("/api/ping")

        assert [first.status_code, second.status_code, anonymous.status_code] == [200, 200, 200]

    async def test_exempt_paths(self):
        app = build_app(auth_requests_per_minute=1, general_requests_per_minute=1)

        async with http_client(app) as client:
            statuses = [(await client.get("/health")).status_code for _ in range(3)]

        assert statuses == [200, 200, 200]

    async def test_store_outage_fails_open(self):
        app = build_app(general_requests_per_minute=1, store=FailingStore())

        async with http_client(app) as client:
            statuses = [(await client.get("/api/ping")).status_code for _ in range(3)]

        assert statuses == [200, 200, 200]


@pytest.mark.asyncio
@pytest.mark.api
class TestSecurityMiddleware:

    async def test_security_headers(self):
        async with http_client(build_app()) as client:
            response = await client.get("/api/ping")

        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "DENY"
        assert "https://res.cloudinary.com" in response.headers["Content-Security-Policy"]
        assert "geolocation=(self)" in response.headers["Permissions-Policy"]
        assert response.headers["X-Response-Time"].endswith("ms")

    async def test_oversized_body_rejected(self):
        async with http_client(build_app()) as client:
            small = await client.post("/api/echo", content=b"x" * 50)
            large = await client.post("/api/echo", content=b"x" * 101)

        assert small.json() == {"size": 50}
        assert large.status_code == 413

    async def test_session_context(self):
        async with http_client(build_app()) as client:
            sign_in(client, "municipal")
            signed_in = await client.get("/api/ping")
            client.cookies.set(settings.AUTH_COOKIE_NAME, "not-a-jwt")
            garbage = await client.get("/api/ping")

        assert signed_in.json()["role"] == "municipal"
        assert signed_in.json()["user_id"] is not None
        assert garbage.json() == {"user_id": None, "role": None}
