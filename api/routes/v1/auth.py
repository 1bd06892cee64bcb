"""
api/routes/v1/auth.py -- Authentication REST endpoints.

Routes:
  POST /api/v1/auth/login       -- password login; returns access + refresh pair
  POST /api/v1/auth/refresh     -- rotate a refresh token into a new pair
  POST /api/v1/auth/logout      -- revoke refresh token / blacklist bearer; always 200
  POST /api/v1/auth/logout-all  -- revoke every refresh token of the caller (requires auth)
  GET  /api/v1/auth/me          -- current principal (requires auth)

Security:
  [H2] POST /login is capped per IP by slowapi (LOGIN_RATE_LIMIT) on top of
       the failed-attempt lockout in AuthService.login.
  [C1] AuthService.login uses authenticate_user(), which equalizes timing.
  [M5] Cache-Control: no-store on every response that carries tokens.
  Refresh tokens are single use: a redeemed token is revoked before the new
  pair is minted.

AuthError subclasses raised by the service are turned into the standard error
envelope by the handler in api/main.py.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter, login_rate_limit
from api.models import LoginRequest, LogoutRequest, MeResponse, MessageResponse, RefreshRequest, TokenResponse
from auth.dependencies import bearer_token, get_current_principal
from auth.models import Principal, TokenPair
from auth.service import AuthService

# Auth policy:
# - POST /api/v1/auth/login:       public -- login endpoint must be unauthenticated
# - POST /api/v1/auth/refresh:     public -- the refresh token is the credential
# - POST /api/v1/auth/logout:      public -- revoking what the caller holds needs no prior auth
# - POST /api/v1/auth/logout-all:  requires auth (get_current_principal)
# - GET  /api/v1/auth/me:          requires auth (get_current_principal)
router = APIRouter()


def _client_address(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def _token_response(pair: TokenPair) -> JSONResponse:
    resp = JSONResponse(status_code=200, content=TokenResponse.from_pair(pair).model_dump())
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/login", response_model=TokenResponse)
@limiter.limit(login_rate_limit)  # [H2]
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with username and password; return a token pair.

    Wrong username and wrong password produce the same "bad_credentials"
    error so username existence is not leaked. A locked-out address gets
    429 "too_many_attempts" with Retry-After.
    """
    service: AuthService = request.app.state.auth_service
    pair = service.login(body.username, body.password, _client_address(request))
    return _token_response(pair)


@router.post("/auth/refresh", response_model=TokenResponse)
def refresh(request: Request, body: RefreshRequest) -> JSONResponse:
    """Exchange a refresh token for a new pair (rotation).

    Unknown, expired and already-used tokens are indistinguishable: all
    return 401 "invalid_refresh_token".
    """
    service: AuthService = request.app.state.auth_service
    pair = service.refresh(body.refresh_token)
    return _token_response(pair)


@router.post("/auth/logout", response_model=MessageResponse)
async def logout(request: Request, body: Optional[LogoutRequest] = None) -> MessageResponse:
    """Revoke the refresh token in the body and blacklist the bearer token, if present.

    Always succeeds, including for tokens that are already invalid.
    """
    service: AuthService = request.app.state.auth_service
    service.logout(
        refresh_token=body.refresh_token if body is not None else None,
        access_token=bearer_token(request),
    )
    return MessageResponse(message="Logged out.")


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/logout-all", response_model=MessageResponse)
async def logout_all(request: Request, principal: Principal = Depends(get_current_principal)) -> MessageResponse:
    """Revoke every refresh token of the caller and blacklist the presented access token."""
    service: AuthService = request.app.state.auth_service
    revoked = service.logout_everywhere(principal.username)
    service.logout(access_token=bearer_token(request))
    return MessageResponse(message=f"Logged out of {revoked} session(s).")


@router.get("/auth/me", response_model=MeResponse)
async def me(principal: Principal = Depends(get_current_principal)) -> MeResponse:
    """Return identity information for the currently authenticated principal."""
    return MeResponse(username=principal.username, role=principal.role)
