"""
auth/errors.py -- Exception taxonomy for the auth core.

Every exception carries a stable error_code and the HTTP status the API layer
should answer with. api/main.py maps AuthError to the standard error envelope,
so route handlers can simply let these propagate.

Callers must not be able to tell a revoked credential from an expired or
forged one, so those cases share a single exception per credential type.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for auth failures that map to an HTTP response."""

    status_code: int = 401
    error_code: str = "unauthorized"

    def __init__(self, message: str, *, detail: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail


class InvalidTokenError(AuthError):
    """Access token is malformed, wrongly signed, expired, or blacklisted."""

    error_code = "invalid_token"


class InvalidRefreshTokenError(AuthError):
    """Refresh token is unknown, expired, or already used."""

    error_code = "invalid_refresh_token"


class BadCredentialsError(AuthError):
    """Username or password is wrong. Never says which."""

    error_code = "bad_credentials"


class TooManyAttemptsError(AuthError):
    """Login admission denied for the origin address (lockout active)."""

    status_code = 429
    error_code = "too_many_attempts"

    def __init__(self, message: str, *, retry_after: int = 0) -> None:
        super().__init__(message)
        self.retry_after = retry_after
