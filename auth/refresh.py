"""
auth/refresh.py -- In-memory refresh token store.

Refresh tokens are opaque random strings (secrets.token_urlsafe(32), 256 bits)
mapped to the identity and role captured at mint time plus an absolute expiry.
Collisions are not checked; the token space makes them negligible.

Single use is enforced by the caller: redeem() does not delete the record, and
the refresh flow revokes the presented token right after a successful redeem
(see AuthService.refresh). revoke() reports whether it removed the record, so
of two concurrent refreshes of one token only the first may rotate it.

Every operation takes the store lock, so concurrent requests and the reclaimer
can share one instance without external locking.
"""

from __future__ import annotations

import logging
import secrets
import threading

from auth.clock import Clock, epoch_ms
from auth.models import RefreshGrant, RefreshTokenRecord

logger = logging.getLogger("trackerauth.auth")


class RefreshTokenStore:
    """Mint, redeem and revoke refresh tokens.

    Usage:
        store = RefreshTokenStore(expiration_ms=604_800_000)
        token = store.mint("admin", "DEVELOPER")
        grant = store.redeem(token)      # RefreshGrant or None
        store.revoke(token)
    """

    def __init__(self, *, expiration_ms: int, clock: Clock = epoch_ms) -> None:
        self._expiration_ms = expiration_ms
        self._clock = clock
        self._records: dict[str, RefreshTokenRecord] = {}
        self._lock = threading.Lock()

    def mint(self, username: str, role: str) -> str:
        token = secrets.token_urlsafe(32)
        record = RefreshTokenRecord(
            token=token,
            username=username,
            role=role,
            expires_at=self._clock() + self._expiration_ms,
        )
        with self._lock:
            self._records[token] = record
        return token

    def redeem(self, token: str) -> RefreshGrant | None:
        """Return the identity bound to `token`, or None if unknown or expired.

        Expired records are removed on read, independent of the reclaimer.
        """
        with self._lock:
            record = self._records.get(token)
            if record is None:
                return None
            if self._clock() > record.expires_at:
                del self._records[token]
                return None
        return RefreshGrant(username=record.username, role=record.role)

    def revoke(self, token: str) -> bool:
        """Remove `token`. Returns True only for the call that actually removed it."""
        with self._lock:
            return self._records.pop(token, None) is not None

    def revoke_all(self, username: str) -> int:
        """Remove every refresh token bound to `username`. Returns the count removed."""
        with self._lock:
            doomed = [t for t, r in self._records.items() if r.username == username]
            for token in doomed:
                del self._records[token]
        if doomed:
            logger.info("Revoked %d refresh token(s) for %s", len(doomed), username)
        return len(doomed)

    def purge_expired(self) -> int:
        """Delete all records past their expiry. Returns number removed."""
        now = self._clock()
        with self._lock:
            expired = [t for t, r in self._records.items() if now > r.expires_at]
            for token in expired:
                del self._records[token]
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
