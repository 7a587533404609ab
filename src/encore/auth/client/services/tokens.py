"""Token endpoint client for the authorization code exchange.

Implements the RFC 6749 Section 4.1.3 access token request with the
RFC 7636 ``code_verifier``, as a public client without a secret.
"""

from __future__ import annotations

import logging

import httpx
from pydantic import ValidationError

from encore.auth.client.models.errors import (
    ClientRejectedError,
    InvalidGrantError,
    TokenTransportError,
    UnexpectedProviderError,
)
from encore.auth.client.models.tokens import TokenRequest, TokenResponse

logger = logging.getLogger(__name__)

BODY_EXCERPT_LENGTH = 200


class OAuth2TokenManager:
    """Exchanges authorization codes at the provider's token endpoint.

    Every non-success is raised as a ``TokenExchangeError`` subclass whose
    ``kind`` names the failure. The exchange is never retried here:
    authorization codes are single-use.
    """

    def __init__(
        self, timeout: float = 10.0, http_client: httpx.AsyncClient | None = None
    ):
        """Initialize the token manager.

        Args:
            timeout: HTTP request timeout in seconds
            http_client: Optional preconfigured client. The caller keeps
                ownership and closes it.
        """
        self.timeout = timeout
        self._owns_client = http_client is None
        self._http_client = http_client or httpx.AsyncClient(timeout=timeout)

    async def exchange_code_for_token(
        self, token_request: TokenRequest
    ) -> TokenResponse:
        """Exchange an authorization code for tokens.

        Args:
            token_request: Token exchange request parameters

        Returns:
            TokenResponse: Parsed successful response

        Raises:
            InvalidGrantError: HTTP 400
            ClientRejectedError: HTTP 401
            TokenTransportError: Network failure or timeout
            UnexpectedProviderError: Any other status or an unusable body
        """
        logger.debug(f"Exchanging authorization code at {token_request.token_endpoint}")

        headers = {
            "Content-Type": "application/x-www-form-urlencoded",
            "Accept": "application/json",
        }
        form_data = token_request.to_form_data()

        logger.debug(
            f"Token request: grant_type={form_data['grant_type']}, "
            f"client_id={form_data['client_id']}"
        )

        try:
            response = await self._http_client.post(
                token_request.token_endpoint,
                data=form_data,
                headers=headers,
            )
        except httpx.HTTPError as e:
            raise TokenTransportError(
                f"HTTP error during token exchange: {e!r}"
            ) from e

        return self._parse_token_response(response)

    def _parse_token_response(self, response: httpx.Response) -> TokenResponse:
        """Classify the token endpoint response (RFC 6749 Section 5)."""
        status = response.status_code

        if 200 <= status < 300:
            try:
                token_response = TokenResponse.model_validate(response.json())
            except (ValueError, ValidationError) as e:
                raise UnexpectedProviderError(
                    f"Invalid token response format: {e}",
                    status_code=status,
                ) from e

            logger.info("Token exchange successful")
            return token_response

        excerpt = _body_excerpt(response)
        provider_error, description = _error_fields(response)
        detail = description or provider_error or excerpt or "no details"

        logger.warning(
            f"Token exchange failed with {status}: {provider_error or 'unknown_error'}"
        )

        if status == 400:
            raise InvalidGrantError(
                f"Authorization code was rejected: {detail}",
                status_code=status,
                provider_error=provider_error,
            )
        if status == 401:
            raise ClientRejectedError(
                f"Client was rejected by the provider: {detail}",
                status_code=status,
                provider_error=provider_error,
            )
        raise UnexpectedProviderError(
            f"Token endpoint returned HTTP {status}: {excerpt}",
            status_code=status,
            provider_error=provider_error,
        )

    async def close(self) -> None:
        """Close the HTTP client if this manager created it."""
        if self._owns_client:
            await self._http_client.aclose()


def _body_excerpt(response: httpx.Response) -> str:
    return response.text[:BODY_EXCERPT_LENGTH]


def _error_fields(response: httpx.Response) -> tuple[str | None, str | None]:
    """Pull ``error`` and ``error_description`` from a JSON error body."""
    try:
        data = response.json()
    except ValueError:
        return None, None
    if not isinstance(data, dict):
        return None, None

    error = data.get("error")
    description = data.get("error_description")
    return (
        error if isinstance(error, str) else None,
        description if isinstance(description, str) else None,
    )
