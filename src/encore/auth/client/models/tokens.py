"""Token exchange models.

Contains the token request sent to the provider, the token endpoint response,
and the token material handed to the downstream consumer.
"""

from __future__ import annotations

import time
from dataclasses import dataclass

from pydantic import BaseModel, Field

DEFAULT_TOKEN_LIFETIME = 3600


@dataclass(frozen=True)
class LinkedTokens:
    """Token material obtained from a successful exchange.

    The downstream consumer owns persistence and refresh of these values.
    """

    access_token: str
    expires_at: float  # Unix timestamp
    refresh_token: str | None = None
    token_type: str = "Bearer"
    scope: str | None = None

    def is_valid(self, buffer_seconds: float = 30.0, now: float | None = None) -> bool:
        """Check if the access token is still usable with a safety buffer."""
        current = time.time() if now is None else now
        return current < (self.expires_at - buffer_seconds)

    def __repr__(self) -> str:
        return (
            f"LinkedTokens(token_type={self.token_type!r}, "
            f"expires_at={self.expires_at!r}, scope={self.scope!r}, "
            f"has_refresh_token={self.refresh_token is not None})"
        )


@dataclass(frozen=True)
class TokenRequest:
    """Authorization code exchange parameters (RFC 6749 Section 4.1.3).

    Public client: PKCE's ``code_verifier`` replaces the client secret.
    """

    token_endpoint: str
    code: str
    redirect_uri: str
    client_id: str
    code_verifier: str  # RFC 7636 PKCE

    grant_type: str = "authorization_code"

    def to_form_data(self) -> dict[str, str]:
        """Convert to form data for application/x-www-form-urlencoded request."""
        return {
            "grant_type": self.grant_type,
            "code": self.code,
            "redirect_uri": self.redirect_uri,
            "client_id": self.client_id,
            "code_verifier": self.code_verifier,
        }

    def __repr__(self) -> str:
        return (
            f"TokenRequest(token_endpoint={self.token_endpoint!r}, "
            f"client_id={self.client_id!r}, redirect_uri={self.redirect_uri!r})"
        )


class TokenResponse(BaseModel):
    """Successful token endpoint response (RFC 6749 Section 5.1)."""

    access_token: str = Field(min_length=1)
    token_type: str = "Bearer"
    expires_in: int | None = None  # Seconds until expiry
    refresh_token: str | None = None
    scope: str | None = None

    def calculate_expires_at(self, issued_at: float) -> float:
        lifetime = (
            self.expires_in if self.expires_in is not None else DEFAULT_TOKEN_LIFETIME
        )
        return issued_at + lifetime

    def to_linked_tokens(self, issued_at: float) -> LinkedTokens:
        return LinkedTokens(
            access_token=self.access_token,
            expires_at=self.calculate_expires_at(issued_at),
            refresh_token=self.refresh_token,
            token_type=self.token_type,
            scope=self.scope,
        )
