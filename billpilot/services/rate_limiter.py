"""Sliding-window limiter for login attempts."""

import logging
import time
from collections import defaultdict, deque
from threading import Lock
from typing import Callable, Deque, Dict

from billpilot.core.exceptions import RateLimited

logger = logging.getLogger(__name__)


class LoginRateLimiter:
    """
    Allows ``max_attempts`` per client key within ``window_seconds``.

    State is process-local; each worker keeps its own counters.
    """

    def __init__(
        self,
        max_attempts: int = 20,
        window_seconds: int = 30 * 60,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_attempts = max_attempts
        self.window_seconds = window_seconds
        self._clock = clock
        self._attempts: Dict[str, Deque[float]] = defaultdict(deque)
        self._lock = Lock()

    def hit(self, key: str) -> None:
        """Record an attempt for ``key``; raise RateLimited once the window is full."""
        with self._lock:
            now = self._clock()
            attempts = self._attempts[key]
            while attempts and now - attempts[0] >= self.window_seconds:
                attempts.popleft()
            if len(attempts) >= self.max_attempts:
                retry_after = int(self.window_seconds - (now - attempts[0])) + 1
                logger.warning("Login rate limit reached for %s", key)
                raise RateLimited(
                    "Too many login attempts from this client. Please try again later.",
                    retry_after=retry_after,
                )
            attempts.append(now)
