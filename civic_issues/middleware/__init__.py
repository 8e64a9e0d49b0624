"""HTTP middleware: security headers, body limits, session context and rate limiting."""

from civic_issues.middleware.security import (
    SecurityHeadersMiddleware,
    RequestSizeLimitMiddleware,
    RequestLoggingMiddleware,
    SessionContextMiddleware,
    get_request_size_limit,
    get_rate_limits,
)
from civic_issues.middleware.ratelimit import (
    RateLimitMiddleware,
    MemoryBucketStore,
    RedisBucketStore,
    create_bucket_store,
)

__all__ = [
    "SecurityHeadersMiddleware",
    "RequestSizeLimitMiddleware",
    "RequestLoggingMiddleware",
    "SessionContextMiddleware",
    "RateLimitMiddleware",
    "MemoryBucketStore",
    "RedisBucketStore",
    "create_bucket_store",
    "get_request_size_limit",
    "get_rate_limits",
]
