"""
auth/tokens.py -- Access token engine (JWT, HS256).

Security design decisions:
  JWT: python-jose with HS256. Tokens carry jti (uuid4), sub (username), role,
       iat and exp. The signing key comes from auth.keys.derive_signing_key().

  Verification fails closed: verify() returns False on any failure -- bad
       structure, bad signature, expired exp, or a blacklisted jti -- and never
       raises. The route layer turns False into 401.

  Expiry is checked here rather than by python-jose, whose check has
       whole-second granularity with the comparison on the wrong side of the
       boundary for this contract. exp is a JWT NumericDate (seconds,
       truncated); a token is expired once now_ms > exp * 1000.

  Claim extraction (get_username / get_role) checks the signature but not
       expiry or the blacklist. Callers must call verify() first.

Layer rule: no imports from api/ or core/. Configuration is passed in by
auth.service.AuthService, which reads Settings.
"""

from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING, Any

from jose import JWTError, jwt

from auth.blacklist import TokenBlacklist
from auth.clock import Clock, epoch_ms
from auth.errors import InvalidTokenError
from auth.keys import derive_signing_key

if TYPE_CHECKING:
    from auth.refresh import RefreshTokenStore

logger = logging.getLogger("trackerauth.auth")

_ALGORITHM = "HS256"

# python-jose validates exp in whole seconds; the engine does its own check.
_DECODE_OPTIONS = {"verify_exp": False}


class AccessTokenEngine:
    """Issue, verify and revoke signed access tokens.

    Usage:
        engine = AccessTokenEngine(secret, expiration_ms=3_600_000, refresh_store=store)
        token = engine.issue_access_token("admin", "DEVELOPER")
        if engine.verify(token):
            engine.get_username(token)   # "admin"
        engine.blacklist(token)          # logout
    """

    def __init__(
        self,
        secret: str | bytes,
        *,
        expiration_ms: int,
        refresh_store: RefreshTokenStore,
        blacklist: TokenBlacklist | None = None,
        clock: Clock = epoch_ms,
    ) -> None:
        self._key = derive_signing_key(secret)
        self._expiration_ms = expiration_ms
        self._refresh_store = refresh_store
        self.blacklisted = blacklist if blacklist is not None else TokenBlacklist()
        self._clock = clock

    @property
    def expiration_ms(self) -> int:
        """Configured access-token lifetime in milliseconds."""
        return self._expiration_ms

    # ------------------------------------------------------------------
    # Issuance
    # ------------------------------------------------------------------

    def issue_access_token(self, username: str, role: str) -> str:
        """Return a signed compact JWT for (username, role)."""
        issued_ms = self._clock()
        payload = {
            "jti": str(uuid.uuid4()),
            "sub": username,
            "role": role,
            "iat": issued_ms // 1000,
            "exp": (issued_ms + self._expiration_ms) // 1000,
        }
        return jwt.encode(payload, self._key, algorithm=_ALGORITHM)

    def issue_refresh_token(self, username: str, role: str) -> str:
        """Mint a refresh token bound to (username, role) in the refresh store."""
        return self._refresh_store.mint(username, role)

    # ------------------------------------------------------------------
    # Verification
    # ------------------------------------------------------------------

    def verify(self, token: str | None) -> bool:
        """Return True only for a well-formed, correctly signed, unexpired, non-blacklisted token."""
        claims = self._decode(token)
        if claims is None or self._is_expired(claims):
            return False
        return claims["jti"] not in self.blacklisted

    def get_username(self, token: str) -> str:
        return self._claims_or_raise(token)["sub"]

    def get_role(self, token: str) -> str:
        return self._claims_or_raise(token)["role"]

    # ------------------------------------------------------------------
    # Revocation
    # ------------------------------------------------------------------

    def blacklist(self, token: str | None) -> None:
        """Blacklist the token's jti. No-op for tokens that already fail verification."""
        claims = self._decode(token)
        if claims is None or self._is_expired(claims):
            return
        self.blacklisted.add(claims["jti"])
        logger.info("Access token blacklisted for %s", claims["sub"])

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _decode(self, token: str | None) -> dict[str, Any] | None:
        """Check the signature and claim shapes. Returns the claims or None."""
        if not isinstance(token, str) or not token:
            return None
        try:
            claims = jwt.decode(token, self._key, algorithms=[_ALGORITHM], options=_DECODE_OPTIONS)
        except JWTError:
            return None
        for name in ("jti", "sub", "role"):
            if not isinstance(claims.get(name), str):
                return None
        if not isinstance(claims.get("exp"), int):
            return None
        return claims

    def _is_expired(self, claims: dict[str, Any]) -> bool:
        return self._clock() > claims["exp"] * 1000

    def _claims_or_raise(self, token: str) -> dict[str, Any]:
        claims = self._decode(token)
        if claims is None:
            raise InvalidTokenError("Invalid access token.")
        return claims
