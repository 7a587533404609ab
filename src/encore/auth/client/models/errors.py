"""Exception hierarchy for the account linking flow.

Expected flow failures never leave the callback interpreter as exceptions;
they are mapped to tagged results. The token exchange errors carry the
failure kind they map to so the interpreter does not inspect types.
"""

from __future__ import annotations

from encore.auth.client.models.results import FailureKind


class OAuth2Error(Exception):
    """Base exception for all OAuth 2.0 related errors."""

    pass


class ConfigurationError(OAuth2Error):
    """Raised when the link configuration is missing or invalid."""

    pass


class PKCEError(OAuth2Error):
    """Raised when PKCE parameter generation or validation fails."""

    pass


class CallbackAlreadyHandledError(OAuth2Error):
    """Raised when a callback interpreter is asked to run a second time."""

    pass


class TokenError(OAuth2Error):
    """Raised when token operations fail."""

    pass


class TokenExchangeError(TokenError):
    """Raised when authorization code to token exchange fails."""

    kind: FailureKind = FailureKind.UNEXPECTED_PROVIDER_ERROR

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        provider_error: str | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.provider_error = provider_error


class InvalidGrantError(TokenExchangeError):
    """Code already used, expired, or the verifier did not match (HTTP 400)."""

    kind = FailureKind.INVALID_GRANT


class ClientRejectedError(TokenExchangeError):
    """Redirect URI mismatch or app misconfiguration (HTTP 401)."""

    kind = FailureKind.CLIENT_REJECTED


class TokenTransportError(TokenExchangeError):
    """The token endpoint could not be reached or timed out."""

    kind = FailureKind.TRANSPORT_ERROR


class UnexpectedProviderError(TokenExchangeError):
    """Any other non-2xx status or an unusable success body."""

    kind = FailureKind.UNEXPECTED_PROVIDER_ERROR
