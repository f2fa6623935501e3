"""Sliding-window rate limiting for repeated client actions.

Attempts are tracked per key (``api_/api/links``, ``login_alice``) in
process memory. Nothing is persisted: the limiter dampens abuse from one
process, it does not account quotas.

Example:
    >>> from linkvault.ratelimit import RateLimiter
    >>> limiter = RateLimiter()
    >>> [limiter.is_limited("k", 3, 1000) for _ in range(4)]
    [False, False, False, True]
"""

from __future__ import annotations

import math
import threading
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass

DEFAULT_MAX_ATTEMPTS = 5
DEFAULT_WINDOW_MS = 60_000


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    remaining: int
    reset_seconds: int


class RateLimiter:
    """Per-key sliding window counter.

    Args:
        clock: Returns the current time in seconds; monotonic by default
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._attempts: dict[str, deque[float]] = {}
        self._windows: dict[str, float] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        """Number of keys with attempts still inside their window."""
        return len(self._attempts)

    def _evict_idle(self, now: float) -> None:
        """Forget keys whose newest attempt has left its window."""
        idle = [
            key
            for key, attempts in self._attempts.items()
            if not attempts or now - attempts[-1] >= self._windows[key]
        ]
        for key in idle:
            del self._attempts[key]
            del self._windows[key]

    def check(
        self,
        key: str,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        window_ms: int = DEFAULT_WINDOW_MS,
    ) -> RateLimitResult:
        """Record an attempt unless the key is already at its limit.

        Algorithm:
        - Forget keys that have been idle for a whole window
        - Drop this key's timestamps older than the window
        - If the remaining count >= max_attempts => block, record nothing
        - Otherwise record now and allow
        - reset_seconds: until the oldest attempt leaves the window
        """
        window = window_ms / 1000.0

        with self._lock:
            now = self._clock()
            self._evict_idle(now)

            attempts = self._attempts.get(key, deque())
            while attempts and now - attempts[0] >= window:
                attempts.popleft()

            if len(attempts) >= max_attempts:
                reset = attempts[0] + window - now if attempts else window
                return RateLimitResult(
                    allowed=False,
                    remaining=0,
                    reset_seconds=max(1, math.ceil(reset)),
                )

            attempts.append(now)
            self._attempts[key] = attempts
            self._windows[key] = window
            reset = attempts[0] + window - now
            return RateLimitResult(
                allowed=True,
                remaining=max_attempts - len(attempts),
                reset_seconds=max(0, math.ceil(reset)),
            )

    def is_limited(
        self,
        key: str,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        window_ms: int = DEFAULT_WINDOW_MS,
    ) -> bool:
        """True if the action is over its limit; records the attempt otherwise."""
        return not self.check(key, max_attempts, window_ms).allowed

    def reset(self, key: str | None = None) -> None:
        """Forget one key's history, or every key's."""
        with self._lock:
            if key is None:
                self._attempts.clear()
                self._windows.clear()
            else:
                self._attempts.pop(key, None)
                self._windows.pop(key, None)


# Process-wide limiter shared by every client in this process
rate_limiter = RateLimiter()


def is_limited(
    key: str,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    window_ms: int = DEFAULT_WINDOW_MS,
) -> bool:
    """``is_limited`` against the process-wide limiter."""
    return rate_limiter.is_limited(key, max_attempts, window_ms)
