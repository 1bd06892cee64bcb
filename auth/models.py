"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores and the service
own behaviour; these classes own shape.

Timestamps are epoch-milliseconds (int) unless stated otherwise.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class User:
    """A row of the credential store.

    hashed_password is a bcrypt hash. role is an application-defined label
    such as "DEVELOPER" or "STAKEHOLDER"; the auth core carries it verbatim.
    """

    username: str
    role: str
    hashed_password: str
    id: int | None = None
    created_at: str | None = None
    is_active: bool = True


@dataclass(frozen=True)
class RefreshTokenRecord:
    """Server-side state for one opaque refresh token.

    username and role are captured when the token is minted. A later role
    change on the user does not affect tokens already issued.
    """

    token: str
    username: str
    role: str
    expires_at: int


@dataclass(frozen=True)
class RefreshGrant:
    """Identity bound to a refresh token, returned by a successful redeem."""

    username: str
    role: str


@dataclass(frozen=True)
class LoginAttempt:
    """Failed-login bookkeeping for one origin address.

    Invariant: locked_until != 0 implies count >= the limiter's max_attempts.
    Immutable -- the limiter replaces the record on every update.
    """

    count: int
    first_attempt_time: int
    locked_until: int = 0


@dataclass(frozen=True)
class TokenPair:
    """Access + refresh tokens handed to a client after login or refresh.

    expires_in is the access-token lifetime in milliseconds.
    """

    access_token: str
    refresh_token: str
    role: str
    expires_in: int


@dataclass(frozen=True)
class Principal:
    """Identity extracted from a verified access token."""

    username: str
    role: str
