"""Attempt limiter for guardian verification.

The contact suffix is only four digits, so repeated guesses against one
claimed identity are capped using a fixed window per key.

Example:
    from gatong_pass.rate_limiter import AttemptLimiter

    # 5 failed attempts per identity per 10 minutes
    limiter = AttemptLimiter(max_attempts=5, window_seconds=600)

    limiter.check(key)          # Raises TooManyAttemptsError when locked
    result = verifier.verify(attempt, roster)
    if not result.is_verified:
        limiter.record_failure(key)
"""

import threading
import time
from typing import Callable, Hashable, Optional

from gatong_pass.errors import TooManyAttemptsError


class AttemptLimiter:
    """Thread-safe keyed limiter using a fixed window algorithm.

    Each key gets its own window, opened by its first recorded failure.
    Once ``max_attempts`` failures land inside the window the key is locked
    until the window ends. Unlike a blocking rate limiter this never sleeps;
    callers are told how long to wait instead.

    Attributes:
        max_attempts: Failures allowed per window. 0 disables limiting.
        window_seconds: Length of each window in seconds.
    """

    DEFAULT_MAX_ATTEMPTS = 5
    DEFAULT_WINDOW_SECONDS = 600

    def __init__(
        self,
        max_attempts: Optional[int] = None,
        window_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the limiter.

        Args:
            max_attempts: Failures allowed per window (default: 5, 0 disables).
            window_seconds: Window duration in seconds (default: 600).
            clock: Time source, injectable for tests.
        """
        self._max_attempts = (
            self.DEFAULT_MAX_ATTEMPTS if max_attempts is None else max_attempts
        )
        self._window_seconds = window_seconds or self.DEFAULT_WINDOW_SECONDS
        self._clock = clock

        # key -> (window_start, failure_count)
        self._windows: dict[Hashable, tuple[float, int]] = {}

        self._lock = threading.Lock()

    @property
    def enabled(self) -> bool:
        return self._max_attempts > 0

    @property
    def max_attempts(self) -> int:
        """Failures allowed per window."""
        return self._max_attempts

    @property
    def window_seconds(self) -> float:
        """Window duration in seconds."""
        return self._window_seconds

    def _current(self, key: Hashable, now: float) -> tuple[float, int]:
        window = self._windows.get(key)
        if window is None or now - window[0] >= self._window_seconds:
            self._windows.pop(key, None)
            return now, 0
        return window

    def check(self, key: Hashable) -> None:
        """Raise if the key has no attempts left in its current window.

        Raises:
            TooManyAttemptsError: With ``retry_after`` set to the seconds
                remaining in the window.
        """
        if not self.enabled:
            return

        with self._lock:
            now = self._clock()
            window_start, count = self._current(key, now)
            if count >= self._max_attempts:
                retry_after = round(self._window_seconds - (now - window_start), 2)
                raise TooManyAttemptsError(
                    "Too many verification attempts; try again later",
                    retry_after=retry_after,
                )

    def record_failure(self, key: Hashable) -> int:
        """Count a failed attempt and return attempts remaining."""
        if not self.enabled:
            return 0

        with self._lock:
            now = self._clock()
            window_start, count = self._current(key, now)
            count += 1
            self._windows[key] = (window_start, count)
            return max(0, self._max_attempts - count)

    def reset(self, key: Optional[Hashable] = None) -> None:
        """Clear one key, or every key when none is given."""
        with self._lock:
            if key is None:
                self._windows.clear()
            else:
                self._windows.pop(key, None)

    def get_status(self, key: Hashable) -> dict[str, object]:
        """Get the current window state for a key.

        Returns:
            Dictionary with:
            - failures: Failures recorded in the current window
            - max_attempts: Maximum allowed per window
            - attempts_remaining: Attempts left before locking
            - seconds_remaining: Time until the window resets
        """
        with self._lock:
            now = self._clock()
            window = self._windows.get(key)
            if window is None or now - window[0] >= self._window_seconds:
                failures = 0
                seconds_remaining = float(self._window_seconds)
            else:
                failures = window[1]
                seconds_remaining = self._window_seconds - (now - window[0])

            return {
                "failures": failures,
                "max_attempts": self._max_attempts,
                "attempts_remaining": max(0, self._max_attempts - failures),
                "seconds_remaining": round(seconds_remaining, 2),
            }
