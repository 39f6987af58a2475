"""Rate limiting for unauthenticated endpoints (sliding window, in memory)."""

import asyncio
import time
from collections import defaultdict
from dataclasses import dataclass
from enum import Enum

from fastapi import Request


class RateLimitType(str, Enum):
    """Rate limit buckets for different endpoint categories."""

    PAIRING = "pairing"
    MOBILE = "mobile"
    AUTH = "auth"


@dataclass
class RateLimitConfig:
    """Configuration for a rate limit type."""

    requests: int
    window_seconds: int


# Pairing is the only place a guessed secret could pay off, so it is tightest
RATE_LIMIT_CONFIG: dict[RateLimitType, RateLimitConfig] = {
    RateLimitType.PAIRING: RateLimitConfig(requests=10, window_seconds=60),
    RateLimitType.MOBILE: RateLimitConfig(requests=120, window_seconds=60),
    RateLimitType.AUTH: RateLimitConfig(requests=10, window_seconds=60),
}


@dataclass
class RateLimitResult:
    """Result of a rate limit check."""

    success: bool
    limit: int
    remaining: int
    reset: int  # Unix timestamp in seconds


class InMemoryRateLimiter:
    """Sliding-window limiter keyed by bucket and caller.

    Suitable for single-instance deployments only; counters are not shared
    between processes.
    """

    def __init__(self) -> None:
        self._requests: dict[str, list[float]] = defaultdict(list)
        self._lock = asyncio.Lock()

    async def check(self, identifier: str, limit_type: RateLimitType) -> RateLimitResult:
        """Record a request and report whether it fits in the window."""
        config = RATE_LIMIT_CONFIG[limit_type]
        key = f"{limit_type.value}:{identifier}"
        now = time.time()
        window_start = now - config.window_seconds

        async with self._lock:
            timestamps = [t for t in self._requests[key] if t > window_start]
            self._requests[key] = timestamps

            if len(timestamps) >= config.requests:
                return RateLimitResult(
                    success=False,
                    limit=config.requests,
                    remaining=0,
                    reset=int(min(timestamps) + config.window_seconds),
                )

            timestamps.append(now)
            return RateLimitResult(
                success=True,
                limit=config.requests,
                remaining=config.requests - len(timestamps),
                reset=int(now + config.window_seconds),
            )

    def reset(self) -> None:
        """Reset all rate limit entries. Useful for testing."""
        self._requests.clear()


# Global rate limiter instance
_rate_limiter = InMemoryRateLimiter()


def get_rate_limiter() -> InMemoryRateLimiter:
    """Get the global rate limiter instance."""
    return _rate_limiter


def get_client_ip(request: Request) -> str | None:
    """Extract client IP, preferring proxy headers."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        # x-forwarded-for can be a comma-separated list, take the first IP
        return forwarded.split(",")[0].strip()

    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()

    if request.client:
        return request.client.host

    return None


async def check_rate_limit(request: Request, limit_type: RateLimitType) -> RateLimitResult:
    """Check rate limit for a request, keyed by client IP."""
    identifier = f"ip:{get_client_ip(request) or 'unknown'}"
    return await get_rate_limiter().check(identifier, limit_type)


def rate_limit_headers(result: RateLimitResult) -> dict[str, str]:
    """Headers describing the caller's remaining budget."""
    headers = {
        "X-RateLimit-Limit": str(result.limit),
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": str(result.reset),
    }

    if not result.success:
        retry_after = max(0, result.reset - int(time.time()))
        headers["Retry-After"] = str(retry_after)

    return headers
