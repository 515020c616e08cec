"""
Rate Limiter Module

Fixed-window, in-process rate limiting for the authentication endpoints.
"""

import time
import threading
from typing import Callable, Dict, Optional, Tuple

from fastapi import HTTPException, Request, status

from .config import TRUST_PROXY_HEADERS
from .logger import get_logger

logger = get_logger(__name__)


class RateLimiter:
    """
    Counts requests per key in fixed windows.

    Examples:
        limiter = RateLimiter()

        @app.post("/api/auth/login")
        async def login(allowed: bool = Depends(limiter.rate_limit_dependency(10, 900, "login"))):
            ...
    """

    def __init__(self, clock: Callable[[], float] = time.time, trust_proxy_headers: bool = TRUST_PROXY_HEADERS):
        self.clock = clock
        self.trust_proxy_headers = trust_proxy_headers
        self.local_storage: Dict[str, Tuple[int, float]] = {}
        self.lock = threading.Lock()

    def check(self, key: str, max_requests: int, period: int) -> Tuple[bool, Optional[int]]:
        """
        Count a request against key.

        Returns:
            Tuple of (is_allowed, reset_time); reset_time is the number of
            seconds until the window resets, None when allowed
        """
        now = self.clock()
        with self.lock:
            self._clean_expired(now)
            count, expire_time = self.local_storage.get(key, (0, now + period))
            count += 1
            self.local_storage[key] = (count, expire_time)

        if count > max_requests:
            return False, max(1, int(expire_time - now))
        return True, None

    def reset(self):
        with self.lock:
            self.local_storage.clear()

    def _clean_expired(self, now: float):
        expired = [key for key, (_, expire_time) in self.local_storage.items() if now > expire_time]
        for key in expired:
            del self.local_storage[key]

    def rate_limit_dependency(self, max_requests: int, period: int, scope: str,
                              message: str = "Too many requests. Please try again later."):
        """Create a FastAPI dependency limiting a route per client IP"""

        async def dependency(request: Request) -> bool:
            key = f"{scope}:{self._get_client_ip(request)}"
            allowed, reset_time = self.check(key, max_requests, period)
            if not allowed:
                logger.warning("Rate limit exceeded for %s", key)
                raise HTTPException(
                    status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                    detail=message,
                    headers={
                        "X-RateLimit-Limit": str(max_requests),
                        "Retry-After": str(reset_time),
                    },
                )
            return True

        return dependency

    def _get_client_ip(self, request: Request) -> str:
        forwarded = request.headers.get("X-Forwarded-For") if self.trust_proxy_headers else None
        if forwarded:
            return forwarded.split(",")[0].strip()
        return request.client.host if request.client else "unknown"


rate_limiter = RateLimiter()
