"""
auth/service.py -- Login, refresh, logout and introspection flows.

AuthService owns every piece of in-memory auth state: the access token engine
(with its blacklist), the refresh token store and the login rate limiter. One
instance is built at startup (api/main.py lifespan) and handed to request
handlers through app.state.auth_service. Nothing here is a module global.

Flows:
  login      admission check -> bcrypt check -> reset limiter -> mint pair
  refresh    redeem -> revoke presented token -> mint new pair (rotation)
  logout     revoke refresh token and/or blacklist access token; never fails
  introspect verify access token -> Principal

Minting the access and refresh halves of a pair is not atomic. Both are local
constructions, so a failure between them leaves nothing to roll back.
"""

from __future__ import annotations

import logging
import math

from auth.blacklist import TokenBlacklist
from auth.clock import Clock, epoch_ms
from auth.errors import BadCredentialsError, InvalidRefreshTokenError, InvalidTokenError, TooManyAttemptsError
from auth.models import Principal, TokenPair
from auth.passwords import authenticate_user
from auth.ratelimit import LoginRateLimiter
from auth.reclaimer import Reclaimer
from auth.refresh import RefreshTokenStore
from auth.store import UserStore
from auth.tokens import AccessTokenEngine
from core.config import Settings

logger = logging.getLogger("trackerauth.auth")


class AuthService:
    def __init__(
        self,
        *,
        engine: AccessTokenEngine,
        refresh_store: RefreshTokenStore,
        rate_limiter: LoginRateLimiter,
        user_store: UserStore,
    ) -> None:
        self.engine = engine
        self.refresh_store = refresh_store
        self.rate_limiter = rate_limiter
        self.user_store = user_store

    @classmethod
    def from_settings(cls, settings: Settings, user_store: UserStore, clock: Clock = epoch_ms) -> AuthService:
        """Wire the engine, stores and limiter from configuration."""
        refresh_store = RefreshTokenStore(expiration_ms=settings.refresh_token_expire_ms, clock=clock)
        engine = AccessTokenEngine(
            settings.secret_key,
            expiration_ms=settings.access_token_expire_ms,
            refresh_store=refresh_store,
            blacklist=TokenBlacklist(),
            clock=clock,
        )
        rate_limiter = LoginRateLimiter(
            max_attempts=settings.login_max_attempts,
            window_ms=settings.login_window_ms,
            lockout_ms=settings.login_lockout_ms,
            clock=clock,
        )
        return cls(engine=engine, refresh_store=refresh_store, rate_limiter=rate_limiter, user_store=user_store)

    def build_reclaimer(self, settings: Settings) -> Reclaimer:
        return Reclaimer(
            refresh_store=self.refresh_store,
            rate_limiter=self.rate_limiter,
            blacklist=self.engine.blacklisted,
            refresh_interval=settings.refresh_sweep_seconds,
            limiter_interval=settings.limiter_sweep_seconds,
            blacklist_interval=settings.blacklist_sweep_seconds,
        )

    # ------------------------------------------------------------------
    # Flows
    # ------------------------------------------------------------------

    def login(self, username: str, password: str, address: str) -> TokenPair:
        """Authenticate and mint a token pair.

        Raises TooManyAttemptsError while `address` is locked out, and
        BadCredentialsError for an unknown user or wrong password (the failure
        is counted against `address`).
        """
        if not self.rate_limiter.is_allowed(address):
            retry_after = math.ceil(self.rate_limiter.retry_after_ms(address) / 1000)
            logger.warning("Login refused for %s: too many failed attempts", address)
            raise TooManyAttemptsError("Too many failed login attempts. Try again later.", retry_after=retry_after)

        user = authenticate_user(self.user_store, username, password)
        if user is None:
            self.rate_limiter.record_failed_attempt(address)
            logger.info("Failed login from %s", address)
            raise BadCredentialsError("Invalid username or password.")

        self.rate_limiter.reset_attempts(address)
        logger.info("Login succeeded for %s from %s", user.username, address)
        return self._mint_pair(user.username, user.role)

    def refresh(self, refresh_token: str) -> TokenPair:
        """Exchange a refresh token for a new pair. The presented token is consumed."""
        grant = self.refresh_store.redeem(refresh_token)
        if grant is None:
            logger.info("Refresh rejected: unknown or expired token")
            raise InvalidRefreshTokenError("Invalid or expired refresh token.")
        if not self.refresh_store.revoke(refresh_token):
            # A concurrent refresh consumed the same token first.
            logger.warning("Refresh rejected: token already rotated")
            raise InvalidRefreshTokenError("Invalid or expired refresh token.")
        return self._mint_pair(grant.username, grant.role)

    def logout(self, refresh_token: str | None = None, access_token: str | None = None) -> None:
        if refresh_token:
            self.refresh_store.revoke(refresh_token)
        if access_token:
            self.engine.blacklist(access_token)

    def logout_everywhere(self, username: str) -> int:
        """Revoke every refresh token issued to `username`."""
        return self.refresh_store.revoke_all(username)

    def introspect(self, access_token: str | None) -> Principal:
        """Return the identity behind a bearer token, or raise InvalidTokenError."""
        if not self.engine.verify(access_token):
            raise InvalidTokenError("Invalid or expired access token.")
        return Principal(
            username=self.engine.get_username(access_token),
            role=self.engine.get_role(access_token),
        )

    def _mint_pair(self, username: str, role: str) -> TokenPair:
        return TokenPair(
            access_token=self.engine.issue_access_token(username, role),
            refresh_token=self.engine.issue_refresh_token(username, role),
            role=role,
            expires_in=self.engine.expiration_ms,
        )
