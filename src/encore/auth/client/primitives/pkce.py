"""PKCE (Proof Key for Code Exchange) manager.

Implements RFC 7636 S256 parameter generation and validation so that an
intercepted authorization code cannot be redeemed without the verifier held
by this client.
"""

from __future__ import annotations

import base64

from encore.auth.client.models.errors import PKCEError
from encore.auth.client.models.security import (
    PKCEParameters,
    is_valid_challenge,
    is_valid_verifier,
)
from encore.auth.client.primitives.capabilities import CryptoProvider, SystemCrypto

# 96 bytes encode to exactly 128 base64url characters, the RFC maximum
VERIFIER_ENTROPY_BYTES = 96


def base64url_encode(data: bytes) -> str:
    """Encode bytes as base64url without padding (RFC 4648 Section 5)."""
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


class PKCEManager:
    """Generates and validates PKCE parameters.

    Randomness and hashing come from the injected crypto provider, so
    ``derive_challenge`` is a pure function of its input and generation can
    be made deterministic in tests.
    """

    def __init__(self, crypto: CryptoProvider | None = None):
        self._crypto = crypto or SystemCrypto()

    def generate_parameters(self) -> PKCEParameters:
        """Generate a fresh verifier/challenge pair for one authorization attempt.

        Raises:
            PKCEError: If the crypto provider fails or yields unusable output
        """
        code_verifier = self.generate_verifier()
        code_challenge = self.derive_challenge(code_verifier)

        try:
            return PKCEParameters(
                code_verifier=code_verifier,
                code_challenge=code_challenge,
                code_challenge_method="S256",
            )
        except ValueError as e:
            raise PKCEError(f"Generated PKCE parameters are invalid: {e}") from e

    def generate_verifier(self) -> str:
        """Generate a 128-character code verifier from 96 random bytes.

        Raises:
            PKCEError: If random bytes cannot be drawn or the result is malformed
        """
        try:
            random_bytes = self._crypto.random_bytes(VERIFIER_ENTROPY_BYTES)
        except Exception as e:
            raise PKCEError(f"Failed to draw random bytes for verifier: {e}") from e

        if len(random_bytes) != VERIFIER_ENTROPY_BYTES:
            raise PKCEError(
                f"Crypto provider returned {len(random_bytes)} bytes, "
                f"expected {VERIFIER_ENTROPY_BYTES}"
            )

        verifier = base64url_encode(random_bytes)
        if not self.is_valid_verifier(verifier):
            raise PKCEError("Generated code verifier failed validation")
        return verifier

    def derive_challenge(self, code_verifier: str) -> str:
        """Derive the S256 code challenge for a verifier.

        RFC 7636 Section 4.2: BASE64URL-ENCODE(SHA256(ASCII(code_verifier)))

        Raises:
            PKCEError: If the verifier is malformed or hashing fails
        """
        if not self.is_valid_verifier(code_verifier):
            raise PKCEError("Cannot derive challenge from a malformed code verifier")

        try:
            digest = self._crypto.sha256(code_verifier.encode("utf-8"))
        except Exception as e:
            raise PKCEError(f"Failed to hash code verifier: {e}") from e

        challenge = base64url_encode(digest)
        if not self.is_valid_challenge(challenge):
            raise PKCEError("Derived code challenge failed validation")
        return challenge

    @staticmethod
    def is_valid_verifier(value: object) -> bool:
        return is_valid_verifier(value)

    @staticmethod
    def is_valid_challenge(value: object) -> bool:
        return is_valid_challenge(value)
