"""Authorization flow models.

Contains the outbound authorization request and the parsed return redirect.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from urllib.parse import urlencode

from encore.auth.client.models.security import PendingAttempt


@dataclass(frozen=True)
class AuthorizationRequest:
    """Authorization request parameters for the PKCE flow."""

    authorization_endpoint: str
    client_id: str
    redirect_uri: str
    code_challenge: str
    code_challenge_method: str
    state: str
    scope: str
    show_dialog: bool = False

    def build_authorization_url(self) -> str:
        """Build the complete authorization URL."""
        params = {
            "client_id": self.client_id,
            "response_type": "code",
            "redirect_uri": self.redirect_uri,
            "code_challenge_method": self.code_challenge_method,
            "code_challenge": self.code_challenge,
            "state": self.state,
            "scope": self.scope,
        }

        if self.show_dialog:
            params["show_dialog"] = "true"

        separator = "&" if "?" in self.authorization_endpoint else "?"
        return f"{self.authorization_endpoint}{separator}{urlencode(params)}"


@dataclass(frozen=True)
class AuthorizationStart:
    """What the caller needs to send the browser to the provider."""

    url: str
    attempt: PendingAttempt = field(repr=False)


@dataclass(frozen=True)
class AuthorizationResponse:
    """Query parameters carried by the provider's return redirect."""

    code: str | None = None
    state: str | None = None
    error: str | None = None
    error_description: str | None = None

    def is_callback(self) -> bool:
        """Whether any authorization parameter is present at all."""
        return any(v is not None for v in (self.code, self.error, self.state))

    def is_error(self) -> bool:
        return self.error is not None

    def __repr__(self) -> str:
        return (
            f"AuthorizationResponse(has_code={self.code is not None}, "
            f"has_state={self.state is not None}, error={self.error!r})"
        )
