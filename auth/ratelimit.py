"""
auth/ratelimit.py -- Failed-login throttling per origin address.

State machine per address, driven by wall-clock time:

  Unthrottled (no record)
    -> Tracking   count < max_attempts, inside the window
    -> Locked     count reached max_attempts, locked_until set
    -> Unthrottled once the lock or the window has expired

Only failed attempts are counted. A successful login calls reset_attempts().
This component has no failure path: absence of a record means "allowed".

This is separate from api/limiter.py (slowapi), which caps raw request rate
on the login route regardless of outcome.
"""

from __future__ import annotations

import logging
import threading

from auth.clock import Clock, epoch_ms
from auth.models import LoginAttempt

logger = logging.getLogger("trackerauth.auth")

MAX_ATTEMPTS = 5
WINDOW_MS = 60_000  # 1 minute
LOCKOUT_MS = 300_000  # 5 minutes


class LoginRateLimiter:
    def __init__(
        self,
        *,
        max_attempts: int = MAX_ATTEMPTS,
        window_ms: int = WINDOW_MS,
        lockout_ms: int = LOCKOUT_MS,
        clock: Clock = epoch_ms,
    ) -> None:
        self.max_attempts = max_attempts
        self.window_ms = window_ms
        self.lockout_ms = lockout_ms
        self._clock = clock
        self._attempts: dict[str, LoginAttempt] = {}
        self._lock = threading.Lock()

    def is_allowed(self, address: str) -> bool:
        """Decide login admission for `address`, purging a stale record on the way."""
        now = self._clock()
        with self._lock:
            attempt = self._attempts.get(address)
            if attempt is None:
                return True
            if attempt.locked_until > 0:
                if now < attempt.locked_until:
                    return False
                del self._attempts[address]
                return True
            if now - attempt.first_attempt_time > self.window_ms:
                del self._attempts[address]
                return True
            return attempt.count < self.max_attempts

    def record_failed_attempt(self, address: str) -> None:
        now = self._clock()
        with self._lock:
            existing = self._attempts.get(address)
            if existing is None or now - existing.first_attempt_time > self.window_ms:
                self._attempts[address] = LoginAttempt(count=1, first_attempt_time=now)
                return
            count = existing.count + 1
            locked_until = now + self.lockout_ms if count >= self.max_attempts else 0
            self._attempts[address] = LoginAttempt(
                count=count,
                first_attempt_time=existing.first_attempt_time,
                locked_until=locked_until,
            )
        if locked_until:
            logger.warning("Login lockout engaged for %s (%d failed attempts)", address, count)

    def reset_attempts(self, address: str) -> None:
        with self._lock:
            self._attempts.pop(address, None)

    def retry_after_ms(self, address: str) -> int:
        """Milliseconds left on the lockout for `address`, 0 when not locked."""
        now = self._clock()
        with self._lock:
            attempt = self._attempts.get(address)
        if attempt is None or attempt.locked_until <= now:
            return 0
        return attempt.locked_until - now

    def purge_expired(self) -> int:
        """Drop records whose lock or window has passed. Returns number removed."""
        now = self._clock()
        with self._lock:
            stale = [a for a, rec in self._attempts.items() if self._is_stale(rec, now)]
            for address in stale:
                del self._attempts[address]
        return len(stale)

    def _is_stale(self, attempt: LoginAttempt, now: int) -> bool:
        if attempt.locked_until > 0:
            return now >= attempt.locked_until
        return now - attempt.first_attempt_time > self.window_ms

    def __len__(self) -> int:
        with self._lock:
            return len(self._attempts)
