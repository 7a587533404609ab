"""Authorization request composition for the account linking flow."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from encore.auth.client.models.config import LinkConfig
from encore.auth.client.models.flow import AuthorizationRequest, AuthorizationStart
from encore.auth.client.models.security import PendingAttempt
from encore.auth.client.primitives.capabilities import CryptoProvider
from encore.auth.client.primitives.pkce import PKCEManager
from encore.auth.client.services.security import generate_state
from encore.auth.client.services.state_store import RedirectStateStore

logger = logging.getLogger(__name__)


class AuthorizationRequestBuilder:
    """Starts an authorization attempt and composes the provider URL.

    Each call to ``build`` mints a new verifier and state token and stores
    them as the single pending attempt, replacing any earlier one. No
    network call is made; the caller performs the navigation.
    """

    def __init__(
        self,
        config: LinkConfig,
        state_store: RedirectStateStore,
        pkce_manager: PKCEManager | None = None,
        crypto: CryptoProvider | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self._config = config
        self._state_store = state_store
        self._crypto = crypto
        self._pkce_manager = pkce_manager or PKCEManager(crypto)
        self._clock = clock

    def build(self) -> AuthorizationStart:
        """Generate proof material, persist it and return the authorization URL.

        Raises:
            PKCEError: If proof material cannot be generated
        """
        pkce_params = self._pkce_manager.generate_parameters()
        state = generate_state(self._crypto)

        attempt = PendingAttempt(
            code_verifier=pkce_params.code_verifier,
            state=state,
            created_at=self._clock(),
        )
        self._state_store.save(attempt)

        auth_request = AuthorizationRequest(
            authorization_endpoint=self._config.authorization_endpoint,
            client_id=self._config.client_id,
            redirect_uri=self._config.redirect_uri,
            code_challenge=pkce_params.code_challenge,
            code_challenge_method=pkce_params.code_challenge_method,
            state=state,
            scope=self._config.scope,
            show_dialog=self._config.show_dialog,
        )
        url = auth_request.build_authorization_url()

        logger.info(
            f"Started authorization attempt for client {self._config.client_id}"
        )
        return AuthorizationStart(url=url, attempt=attempt)
