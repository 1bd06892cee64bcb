"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads happen here. No module should call os.getenv()
or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. secret_key -> SECRET_KEY). Type coercion and validation are built in.

  @model_validator(mode="after"): Runs cross-field validation after all fields
      are resolved. Dev mode generates a SECRET_KEY with a warning, production
      mode refuses to start without one.

Security notes:
  [K1] SECRET_KEY shorter than 32 bytes is accepted but zero-padded by
       auth.keys.derive_signing_key(). Padding adds no entropy, so a warning
       is logged at startup. The padding rule is part of the token contract:
       changing it would change which secret produces which signature.

  [K2] In production mode (DEBUG not set or false), a missing SECRET_KEY is a
       hard startup failure.

  [K3] The blacklist is cleared wholesale by the reclaimer. A sweep interval
       shorter than the access-token lifetime would let a logged-out token
       verify again before it expires, so that combination is warned about.

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("trackerauth.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'auth' / 'trackerauth_users.db'}"


class SeedUser(BaseModel):
    """One entry of SEED_USERS -- a user created at startup if missing.

    password_hash is a bcrypt hash (see `python main.py hash-password`), never
    a plaintext password.
    """

    username: str = Field(min_length=1, max_length=255)
    password_hash: str = Field(min_length=1)
    role: str = Field(min_length=1, max_length=30)


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file. The model_validator enforces
    production-safety rules at startup.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    # Empty string is the sentinel for "not configured". The model_validator
    # below either generates a dev key or raises, so callers never see "".
    secret_key: str = ""
    database_url: str = _DEFAULT_DB_URL

    # ------------------------------------------------------------------
    # Token lifetimes (milliseconds)
    # ------------------------------------------------------------------

    access_token_expire_ms: int = Field(default=3_600_000, ge=0)
    refresh_token_expire_ms: int = Field(default=604_800_000, ge=0)  # 7 days

    # ------------------------------------------------------------------
    # Login throttling
    # ------------------------------------------------------------------

    login_max_attempts: int = Field(default=5, ge=1)
    login_window_ms: int = Field(default=60_000, ge=0)
    login_lockout_ms: int = Field(default=300_000, ge=0)
    # Per-IP request cap enforced by slowapi, independent of the lockout above.
    login_rate_limit: str = "10/minute"

    # ------------------------------------------------------------------
    # Reclaimer intervals (seconds)
    # ------------------------------------------------------------------

    refresh_sweep_seconds: float = Field(default=3600, gt=0)
    limiter_sweep_seconds: float = Field(default=60, gt=0)
    blacklist_sweep_seconds: float = Field(default=3600, gt=0)

    # ------------------------------------------------------------------
    # Credential store bootstrap and HTTP middleware
    # ------------------------------------------------------------------

    seed_users: list[SeedUser] = []
    allowed_hosts: list[str] = ["localhost", "127.0.0.1", "*.localhost"]
    cors_origins: list[str] = ["http://localhost", "http://localhost:4200", "http://127.0.0.1"]

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Enforce the SECRET_KEY policy [K1][K2].

        Dev mode (DEBUG=true): auto-generate a random key with a warning.
            Sessions will not survive restart -- acceptable for local dev.

        Production mode (DEBUG=false or not set): refuse to start if
            SECRET_KEY is missing.
        """
        if not self.secret_key:
            if self.debug:
                self.secret_key = secrets.token_hex(32)
                logger.warning("Using auto-generated SECRET_KEY. Sessions will not persist across restarts.")
            else:
                raise ValueError(
                    "SECRET_KEY is required in production mode. "
                    "Set SECRET_KEY in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        if len(self.secret_key.encode("utf-8")) < 32:
            logger.warning("SECRET_KEY is shorter than 32 bytes and will be zero-padded. Use a longer secret.")
        return self

    @model_validator(mode="after")
    def validate_blacklist_sweep(self) -> "Settings":
        """Warn when the blacklist could be cleared before tokens expire [K3]."""
        if self.blacklist_sweep_seconds * 1000 < self.access_token_expire_ms:
            logger.warning(
                "BLACKLIST_SWEEP_SECONDS (%s) is shorter than the access-token lifetime (%d ms); "
                "logged-out tokens may verify again after a sweep.",
                self.blacklist_sweep_seconds,
                self.access_token_expire_ms,
            )
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    Uses lru_cache so Settings() is instantiated exactly once -- at first call.
    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
