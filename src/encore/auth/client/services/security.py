"""Security utilities for the linking flow.

Provides state token generation, constant-time state comparison and
redirect URI validation.
"""

from __future__ import annotations

import secrets
from urllib.parse import urlparse

from encore.auth.client.primitives.capabilities import CryptoProvider, SystemCrypto
from encore.auth.client.primitives.pkce import base64url_encode

STATE_ENTROPY_BYTES = 24

_LOOPBACK_HOSTS = ("localhost", "127.0.0.1", "::1")


def generate_state(crypto: CryptoProvider | None = None) -> str:
    """Generate an unguessable anti-CSRF state token.

    Returns:
        A 32-character base64url string
    """
    crypto = crypto or SystemCrypto()
    return base64url_encode(crypto.random_bytes(STATE_ENTROPY_BYTES))


def validate_state(expected: str, actual: str | None) -> bool:
    """Compare a returned state parameter to the stored token.

    Comparison is done on UTF-8 bytes in constant time, so attacker-supplied
    non-ASCII input compares unequal instead of raising.
    """
    if actual is None:
        return False
    return secrets.compare_digest(expected.encode("utf-8"), actual.encode("utf-8"))


def validate_redirect_uri(uri: str) -> bool:
    """Validate redirect URI: HTTPS, or plain HTTP on a loopback host."""
    try:
        parsed = urlparse(uri)
    except ValueError:
        return False

    if not parsed.netloc:
        return False
    return parsed.scheme == "https" or (
        parsed.scheme == "http" and parsed.hostname in _LOOPBACK_HOSTS
    )
