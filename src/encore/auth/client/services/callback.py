"""Callback interpretation for the PKCE account linking flow.

Turns the provider's return redirect into a ``CallbackResult``: validates
the state token against the stored attempt, recovers the code verifier and
exchanges the authorization code exactly once.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Mapping
from urllib.parse import parse_qs, urlparse

from encore.auth.client.models.config import LinkConfig
from encore.auth.client.models.errors import (
    CallbackAlreadyHandledError,
    TokenExchangeError,
)
from encore.auth.client.models.flow import AuthorizationResponse
from encore.auth.client.models.results import CallbackResult, FailureKind, FlowState
from encore.auth.client.models.tokens import TokenRequest
from encore.auth.client.services.security import validate_state
from encore.auth.client.services.state_store import RedirectStateStore
from encore.auth.client.services.tokens import OAuth2TokenManager

logger = logging.getLogger(__name__)

CallbackInput = str | Mapping[str, str]


class CallbackInterpreter:
    """Interprets one return redirect per page load.

    States move ``IDLE -> PROCESSING -> SUCCEEDED | FAILED``. Each check
    short-circuits to a failure of a specific kind:

    1. no ``code``, ``error`` or ``state`` parameter: not a callback
    2. ``error`` present: authorization denied, no exchange
    3. no fresh pending attempt: missing verifier
    4. returned state differs from the stored token: state mismatch
    5. no ``code``: missing code
    6. token exchange, classified by HTTP status

    The pending attempt is consumed at step 3 whatever happens afterwards.
    Expected failures are returned, never raised.
    """

    def __init__(
        self,
        config: LinkConfig,
        state_store: RedirectStateStore,
        token_manager: OAuth2TokenManager,
        clock: Callable[[], float] = time.time,
    ):
        self._config = config
        self._state_store = state_store
        self._token_manager = token_manager
        self._clock = clock
        self._state = FlowState.IDLE

    @property
    def state(self) -> FlowState:
        return self._state

    async def interpret(self, callback: CallbackInput) -> CallbackResult:
        """Interpret a return redirect.

        Args:
            callback: Full callback URL, bare query string, or mapping of
                query parameters

        Returns:
            CallbackResult: Succeeded, failed with a kind, or not applicable

        Raises:
            CallbackAlreadyHandledError: If this interpreter already ran to
                a terminal state
        """
        if self._state is not FlowState.IDLE:
            raise CallbackAlreadyHandledError(
                f"Callback already handled (state: {self._state.value})"
            )

        auth_response = self._parse_callback(callback)
        if not auth_response.is_callback():
            logger.debug("No authorization parameters present, not a callback")
            return CallbackResult.not_applicable()

        self._state = FlowState.PROCESSING
        logger.debug(f"Processing authorization callback: {auth_response!r}")

        result = await self._process(auth_response)

        self._state = FlowState.SUCCEEDED if result.is_success() else FlowState.FAILED
        return result

    async def _process(self, auth_response: AuthorizationResponse) -> CallbackResult:
        if auth_response.is_error():
            # Discarded unread; the attempt is dead either way
            self._state_store.discard()
            message = f"Authorization was denied: {auth_response.error}"
            if auth_response.error_description:
                message += f" ({auth_response.error_description})"
            return self._fail(
                FailureKind.AUTHORIZATION_DENIED,
                message,
                provider_error=auth_response.error,
            )

        attempt = self._state_store.take()
        if attempt is None:
            return self._fail(
                FailureKind.MISSING_VERIFIER,
                "No pending authorization attempt was found; it was never "
                "started here, was already used, or has expired",
            )

        if not validate_state(attempt.state, auth_response.state):
            return self._fail(
                FailureKind.STATE_MISMATCH,
                "State parameter mismatch - possible CSRF attack or another "
                "tab started a newer attempt",
            )

        if not auth_response.code:
            return self._fail(
                FailureKind.MISSING_CODE,
                "Callback did not include an authorization code",
            )

        token_request = TokenRequest(
            token_endpoint=self._config.token_endpoint,
            code=auth_response.code,
            redirect_uri=self._config.redirect_uri,
            client_id=self._config.client_id,
            code_verifier=attempt.code_verifier,
        )

        try:
            token_response = await self._token_manager.exchange_code_for_token(
                token_request
            )
        except TokenExchangeError as e:
            return self._fail(
                e.kind,
                str(e),
                status_code=e.status_code,
                provider_error=e.provider_error,
            )

        tokens = token_response.to_linked_tokens(issued_at=self._clock())
        logger.info("Music account linked successfully")
        return CallbackResult.succeeded(tokens)

    def _fail(
        self,
        kind: FailureKind,
        message: str,
        status_code: int | None = None,
        provider_error: str | None = None,
    ) -> CallbackResult:
        logger.warning(f"Authorization callback failed ({kind.value}): {message}")
        return CallbackResult.failed(
            kind, message, status_code=status_code, provider_error=provider_error
        )

    def _parse_callback(self, callback: CallbackInput) -> AuthorizationResponse:
        """Parse a callback URL, query string or parameter mapping."""
        if isinstance(callback, Mapping):
            params = dict(callback)
        else:
            if "?" in callback or "://" in callback:
                query = urlparse(callback).query
            else:
                query = callback
            query_params = parse_qs(query, keep_blank_values=True)
            # First value wins for repeated parameters
            params = {key: values[0] for key, values in query_params.items()}

        return AuthorizationResponse(
            code=params.get("code"),
            state=params.get("state"),
            error=params.get("error"),
            error_description=params.get("error_description"),
        )
