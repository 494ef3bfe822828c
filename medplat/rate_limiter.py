"""
Per-IP rate limiting for the MedPlat API.

Case generation calls a paid LLM, so it gets a tight limit; the lookup
endpoints are cheap and only guarded against runaway clients.
"""

import logging
import time
from collections import defaultdict
from dataclasses import dataclass
from typing import Optional

from fastapi import HTTPException, Request

logger = logging.getLogger(__name__)


class RateLimiter:
    """Sliding-window counter keyed by client identifier."""

    def __init__(self, max_requests: int = 30, window_seconds: int = 60):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.requests: dict[str, list[float]] = defaultdict(list)

    def is_allowed(self, identifier: str) -> tuple[bool, int, int]:
        """
        Record a request for identifier if it fits in the window.

        Returns:
            (allowed, remaining, retry_after_seconds); retry_after is 0 when allowed
        """
        now = time.time()
        cutoff = now - self.window_seconds
        recent = [ts for ts in self.requests[identifier] if ts > cutoff]
        self.requests[identifier] = recent

        if len(recent) >= self.max_requests:
            retry_after = int(min(recent) + self.window_seconds - now) + 1
            return False, 0, max(retry_after, 1)

        recent.append(now)
        return True, self.max_requests - len(recent), 0

    def reset(self, identifier: str) -> None:
        self.requests.pop(identifier, None)


@dataclass(frozen=True)
class RateLimitConfig:
    max_requests: int = 30
    window_seconds: int = 60


ENDPOINT_LIMITS = {
    # LLM-backed
    "cases-generate": RateLimitConfig(max_requests=5, window_seconds=60),
    "guidelines": RateLimitConfig(max_requests=60, window_seconds=60),
    "region": RateLimitConfig(max_requests=60, window_seconds=60),
}


def client_ip(request: Request) -> str:
    """First hop of X-Forwarded-For, else the socket peer."""
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first
    return request.client.host if request.client else "unknown"


class RateLimitManager:
    """One limiter per endpoint, created on first use."""

    def __init__(self, limits: Optional[dict[str, RateLimitConfig]] = None):
        self.limits = limits if limits is not None else ENDPOINT_LIMITS
        self.limiters: dict[str, RateLimiter] = {}

    def get_limiter(self, endpoint: str) -> RateLimiter:
        if endpoint not in self.limiters:
            config = self.limits.get(endpoint, RateLimitConfig())
            self.limiters[endpoint] = RateLimiter(config.max_requests, config.window_seconds)
        return self.limiters[endpoint]

    def check(self, endpoint: str, request: Request) -> dict[str, str]:
        """
        Raises:
            HTTPException: 429 with Retry-After when the client is over the limit
        """
        limiter = self.get_limiter(endpoint)
        ip = client_ip(request)
        allowed, remaining, retry_after = limiter.is_allowed(ip)

        headers = {
            "X-RateLimit-Limit": str(limiter.max_requests),
            "X-RateLimit-Remaining": str(remaining),
            "X-RateLimit-Window": str(limiter.window_seconds),
        }
        if not allowed:
            headers["Retry-After"] = str(retry_after)
            logger.warning(
                f"Rate limit exceeded for {endpoint}: "
                f"{limiter.max_requests}/{limiter.window_seconds}s, retry after {retry_after}s"
            )
            raise HTTPException(
                status_code=429,
                detail=f"Rate limit exceeded. Try again in {retry_after} seconds.",
                headers=headers,
            )
        return headers


rate_limit_manager = RateLimitManager()


def check_rate_limit(endpoint: str, request: Request) -> dict[str, str]:
    return rate_limit_manager.check(endpoint, request)
