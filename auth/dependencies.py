"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Bearer tokens are read from the `Authorization: Bearer <token>` header and
checked by the AuthService on app.state.

try_get_principal() is the soft variant (returns None on failure).
get_current_principal() wraps it and raises HTTP 401 if unauthenticated.
require_role(...) builds a dependency that also raises HTTP 403 when the
principal's role is not in the allowed set. None of the auth routes are
role-restricted; it is exported for the routers of the tracking backend that
mount this core (e.g. Depends(require_role("DEVELOPER")) on write endpoints).

Layer rule: may import from fastapi because this module is part of the
FastAPI dependency injection system. No imports from api/.
"""

from __future__ import annotations

from collections.abc import Callable

from fastapi import HTTPException, Request

from auth.errors import InvalidTokenError
from auth.models import Principal
from auth.service import AuthService


def bearer_token(request: Request) -> str | None:
    """Return the raw token from an `Authorization: Bearer` header, if any."""
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[7:].strip() or None
    return None


def try_get_principal(request: Request) -> Principal | None:
    """Authenticate the request via its bearer token. Never raises."""
    token = bearer_token(request)
    if token is None:
        return None
    service: AuthService = request.app.state.auth_service
    try:
        return service.introspect(token)
    except InvalidTokenError:
        return None


def get_current_principal(request: Request) -> Principal:
    """Require authentication. Raises HTTP 401 if the request is not authenticated.

    Use as a FastAPI dependency:
        @router.get("/protected")
        async def route(principal: Principal = Depends(get_current_principal)): ...
    """
    principal = try_get_principal(request)
    if principal is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required."},
            headers={"WWW-Authenticate": "Bearer"},
        )
    return principal


def require_role(*roles: str) -> Callable[[Request], Principal]:
    """Build a dependency that admits only principals holding one of `roles`.

    Use as a FastAPI dependency:
        @router.post("/tasks")
        async def route(principal: Principal = Depends(require_role("DEVELOPER"))): ...
    """
    allowed = frozenset(roles)

    def dependency(request: Request) -> Principal:
        principal = get_current_principal(request)
        if principal.role not in allowed:
            raise HTTPException(
                status_code=403,
                detail={"code": "forbidden", "message": "Insufficient role for this operation."},
            )
        return principal

    return dependency
