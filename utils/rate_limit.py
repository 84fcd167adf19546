import json
from time import time
from typing import Dict, Tuple, Optional
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
import logging

import redis

from backend.utils.responses import error_response
from config import settings

logger = logging.getLogger(__name__)

_redis_client = None
_redis_available = False

if settings.redis_url:
    try:
        _redis_client = redis.from_url(settings.redis_url, decode_responses=True)
        _redis_client.ping()
        _redis_available = True
        logger.info("Redis connected successfully for rate limiting")
    except redis.RedisError as e:
        logger.warning(f"Redis connection failed: {e}. Falling back to in-memory rate limiting.")
        _redis_client = None
        _redis_available = False
else:
    logger.info("REDIS_URL not set. Using in-memory rate limiting.")

# Paths that are never limited: Stripe retries webhooks and health checks poll
EXEMPT_PATHS = ("/health", "/api/subscriptions/webhook")


def route_class(path: str) -> str:
    if path.startswith("/api/auth"):
        return "auth"
    if path.startswith("/api/"):
        return "api"
    return "default"


class RateLimiterMiddleware(BaseHTTPMiddleware):
    """
    Distributed rate limiter using Redis (with fallback to in-memory).
    Token bucket per client IP and route class (auth, api, default).
    """

    def __init__(self, app, limits: Optional[Dict[str, int]] = None):
        super().__init__(app)
        self.limits = limits or {
            "auth": settings.rate_limit_auth_per_minute,
            "api": settings.rate_limit_api_per_minute,
            "default": settings.rate_limit_default_per_minute,
        }
        self.refill_time_window = 60.0
        # Fallback: in-memory storage (key -> (tokens, last_refill_ts))
        self._buckets: Dict[str, Tuple[float, float]] = {}
        self._use_redis = _redis_available and _redis_client is not None

    def _get_client_ip(self, request: Request) -> str:
        xff = request.headers.get("x-forwarded-for")
        if xff:
            # Take first IP in the list
            return xff.split(",")[0].strip()
        client = request.client
        return client.host if client else "unknown"

    def _refill(self, tokens: float, last_refill: float, capacity: int, now: float) -> float:
        elapsed = max(0.0, now - last_refill)
        return min(capacity, tokens + (elapsed / self.refill_time_window) * capacity)

    def _retry_after(self, tokens: float, capacity: int) -> int:
        return max(1, int((1.0 - tokens) * self.refill_time_window / capacity) + 1)

    def _check_redis(self, key: str, capacity: int) -> Optional[Tuple[bool, int]]:
        """(allowed, retry_after) or None when Redis failed and the in-memory bucket should decide."""
        try:
            now = time()
            bucket_data = _redis_client.get(key)
            if bucket_data:
                data = json.loads(bucket_data)
                tokens = float(data.get("tokens", 0))
                last_refill = float(data.get("last_refill", now))
            else:
                tokens = float(capacity)
                last_refill = now

            tokens = self._refill(tokens, last_refill, capacity, now)
            if tokens < 1.0:
                return False, self._retry_after(tokens, capacity)

            _redis_client.setex(
                key,
                int(self.refill_time_window) + 10,
                json.dumps({"tokens": tokens - 1.0, "last_refill": now}),
            )
            return True, 0
        except (redis.RedisError, ValueError) as e:
            logger.warning(f"Redis rate limit check failed: {e}. Falling back to in-memory.")
            return None

    def _check_memory(self, key: str, capacity: int) -> Tuple[bool, int]:
        now = time()
        tokens, last_refill = self._buckets.get(key, (float(capacity), now))
        tokens = self._refill(tokens, last_refill, capacity, now)
        if tokens < 1.0:
            self._buckets[key] = (tokens, now)
            return False, self._retry_after(tokens, capacity)
        self._buckets[key] = (tokens - 1.0, now)
        return True, 0

    async def dispatch(self, request: Request, call_next) -> Response:
        path = request.url.path
        if not settings.rate_limit_enabled or request.method == "OPTIONS" or path in EXEMPT_PATHS:
            return await call_next(request)

        bucket = route_class(path)
        capacity = self.limits[bucket]
        key = f"rate_limit:{bucket}:{self._get_client_ip(request)}"

        result = self._check_redis(key, capacity) if self._use_redis else None
        if result is None:
            result = self._check_memory(key, capacity)
        allowed, retry_after = result

        if not allowed:
            logger.info(f"Rate limit exceeded for {key}")
            response = error_response(
                "Rate limit exceeded. Try again shortly.",
                status=429,
                code="RATE_LIMIT_EXCEEDED",
                details={"retry_after": retry_after},
            )
            response.headers["Retry-After"] = str(retry_after)
            return response

        return await call_next(request)
