"""
auth/blacklist.py -- In-memory set of revoked access-token identifiers (jti).

Entries carry no expiry of their own. The reclaimer clears the whole set on an
interval at least as long as the access-token lifetime, by which point every
blacklisted token has also expired by its own exp claim.

Limitation: resets on restart and is local to the process.
"""

from __future__ import annotations

import threading


class TokenBlacklist:
    def __init__(self) -> None:
        self._jtis: set[str] = set()
        self._lock = threading.Lock()

    def add(self, jti: str) -> None:
        with self._lock:
            self._jtis.add(jti)

    def __contains__(self, jti: object) -> bool:
        with self._lock:
            return jti in self._jtis

    def __len__(self) -> int:
        with self._lock:
            return len(self._jtis)

    def clear(self) -> int:
        """Drop every entry. Returns how many were removed."""
        with self._lock:
            removed = len(self._jtis)
            self._jtis.clear()
            return removed
