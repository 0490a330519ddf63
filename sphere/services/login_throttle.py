"""
sphere.services.login_throttle — Per-Username Login Lockout
============================================================

Counts consecutive failed logins per username.  On the third failure the
name is blocked for 15 minutes from that moment; any attempt inside the
window is refused before credentials are looked at.  One success clears the
counter.

State is process-local and volatile: a restart clears every block, and
separate processes don't share counters.  The app owns one instance
(see :func:`sphere.api.deps.get_login_throttle`) and passes it into the
identity service.
"""

from __future__ import annotations

import math
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

DEFAULT_MAX_FAILURES = 3
DEFAULT_BLOCK_SECONDS = 15 * 60


@dataclass(slots=True)
class LoginAttempt:
    count: int = 0
    blocked_until: float | None = None


class LoginThrottle:
    """Thread-safe failure counter keyed by username."""

    def __init__(
        self,
        max_failures: int = DEFAULT_MAX_FAILURES,
        block_seconds: int = DEFAULT_BLOCK_SECONDS,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.max_failures = max_failures
        self.block_seconds = block_seconds
        self._clock = clock
        self._attempts: dict[str, LoginAttempt] = {}
        self._lock = threading.Lock()

    def check(self, username: str) -> tuple[bool, int]:
        """Return ``(allowed, remaining_minutes)`` for *username*.

        ``remaining_minutes`` is rounded up and is 0 when allowed.
        """
        now = self._clock()
        with self._lock:
            attempt = self._attempts.get(username)
            if attempt and attempt.blocked_until and now < attempt.blocked_until:
                return False, math.ceil((attempt.blocked_until - now) / 60)
        return True, 0

    def record_failure(self, username: str) -> LoginAttempt:
        """Count a failed attempt; block once the threshold is reached."""
        now = self._clock()
        with self._lock:
            attempt = self._attempts.get(username)
            if attempt is None or (attempt.blocked_until and now >= attempt.blocked_until):
                attempt = LoginAttempt()
                self._attempts[username] = attempt
            attempt.count += 1
            if attempt.count >= self.max_failures:
                attempt.blocked_until = now + self.block_seconds
            return LoginAttempt(attempt.count, attempt.blocked_until)

    def record_success(self, username: str) -> None:
        with self._lock:
            self._attempts.pop(username, None)

    def reset(self, username: str | None = None) -> None:
        """Clear throttle state. If username is None, clear all."""
        with self._lock:
            if username is None:
                self._attempts.clear()
            else:
                self._attempts.pop(username, None)
