"""Token-bucket rate limiting and method-handler middleware built on it."""

from __future__ import annotations

import logging
import math
import threading
import time
from typing import Any, Callable, Mapping

logger = logging.getLogger(__name__)

Handler = Callable[[Any, str, Any], Any]
Middleware = Callable[[Handler], Handler]


class OverloadedError(Exception):
    """Raised when a request is rejected by a rate limiter."""

    def __init__(self, message: str = "JSON RPC overloaded") -> None:
        super().__init__(message)


class RateLimiter:
    """A token bucket refilled at ``rate`` tokens per second, holding at most ``burst``.

    The bucket starts full. A rate of ``math.inf`` allows every event.
    """

    def __init__(
        self,
        rate: float,
        burst: int,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if rate < 0:
            raise ValueError("rate must not be negative")
        if burst < 0:
            raise ValueError("burst must not be negative")
        self.rate = rate
        self.burst = burst
        self._clock = clock
        self._tokens = float(burst)
        self._last = clock()
        self._lock = threading.Lock()

    def allow(self) -> bool:
        """Take one token if one is available now; report whether it was taken."""
        if math.isinf(self.rate):
            return True
        with self._lock:
            now = self._clock()
            elapsed = max(0.0, now - self._last)
            self._last = now
            self._tokens = min(float(self.burst), self._tokens + elapsed * self.rate)
            if self._tokens >= 1.0:
                self._tokens -= 1.0
                return True
            return False


def _session_id(session: Any) -> str:
    value = getattr(session, "id", "")
    if callable(value):
        value = value()
    return value or ""


def global_rate_limiter_middleware(limiter: RateLimiter) -> Middleware:
    """Reject any request for which ``limiter`` has no token available."""

    def middleware(next_handler: Handler) -> Handler:
        def handler(session: Any, method: str, params: Any) -> Any:
            if not limiter.allow():
                raise OverloadedError()
            return next_handler(session, method, params)

        return handler

    return middleware


def per_method_rate_limiter_middleware(limiters: Mapping[str, RateLimiter]) -> Middleware:
    """Rate-limit each method by its own limiter; unlisted methods pass freely."""

    def middleware(next_handler: Handler) -> Handler:
        def handler(session: Any, method: str, params: Any) -> Any:
            limiter = limiters.get(method)
            if limiter is not None and not limiter.allow():
                raise OverloadedError()
            return next_handler(session, method, params)

        return handler

    return middleware


def per_session_rate_limiter_middleware(limit: float, burst: int) -> Middleware:
    """Give each session ID its own limiter; sessions without an ID are not limited."""
    limiters: dict[str, RateLimiter] = {}
    lock = threading.Lock()

    def middleware(next_handler: Handler) -> Handler:
        def handler(session: Any, method: str, params: Any) -> Any:
            session_id = _session_id(session)
            if not session_id:
                logger.warning(
                    "Session ID is empty for method %r. Skipping per-session rate limiting.",
                    method,
                )
                return next_handler(session, method, params)
            with lock:
                limiter = limiters.get(session_id)
                if limiter is None:
                    limiter = limiters[session_id] = RateLimiter(limit, burst)
            if not limiter.allow():
                raise OverloadedError()
            return next_handler(session, method, params)

        return handler

    return middleware