"""
auth/keys.py -- Signing key material for HS256 access tokens.

The configured secret is UTF-8 encoded. Secrets shorter than MIN_KEY_BYTES are
right-padded with zero bytes to exactly MIN_KEY_BYTES; longer secrets are used
unchanged. The secret is never truncated and never hashed.

Known weakness: zero-padding is not a key-derivation function and adds no
entropy. It is kept because it fixes which secret produces which signature --
tokens issued by other services sharing the same secret must keep verifying.
core/config.py logs a warning when a short secret is configured.
"""

from __future__ import annotations

MIN_KEY_BYTES = 32


def derive_signing_key(secret: str | bytes) -> bytes:
    """Return the HMAC key for `secret`, zero-padded to MIN_KEY_BYTES if short."""
    key = secret.encode("utf-8") if isinstance(secret, str) else bytes(secret)
    if len(key) < MIN_KEY_BYTES:
        key = key.ljust(MIN_KEY_BYTES, b"\x00")
    return key
