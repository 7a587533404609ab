"""Music account linking client.

Wires proof generation, redirect state, request building and callback
interpretation together from a single ``LinkConfig``.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

import httpx

from encore.auth.client.models.config import LinkConfig
from encore.auth.client.models.results import CallbackResult
from encore.auth.client.primitives.capabilities import (
    CryptoProvider,
    FileStorage,
    KeyValueStorage,
)
from encore.auth.client.primitives.pkce import PKCEManager
from encore.auth.client.services.callback import CallbackInput, CallbackInterpreter
from encore.auth.client.services.flow import AuthorizationRequestBuilder
from encore.auth.client.services.state_store import RedirectStateStore
from encore.auth.client.services.tokens import OAuth2TokenManager

logger = logging.getLogger(__name__)


class AccountLinkClient:
    """High-level entry point for connecting a music streaming account.

    Typical use: ``start()`` returns the URL to send the browser to; when the
    browser comes back, ``handle_callback(url)`` returns the tagged result
    for the presenter and the token consumer.

    Without an explicit ``storage`` the pending attempt is kept in a
    ``FileStorage`` at ``config.storage_path`` so it survives the page
    unload between ``start`` and the callback.
    """

    def __init__(
        self,
        config: LinkConfig,
        storage: KeyValueStorage | None = None,
        crypto: CryptoProvider | None = None,
        clock: Callable[[], float] = time.time,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.config = config
        self._clock = clock

        self.state_store = RedirectStateStore(
            storage if storage is not None else FileStorage(config.storage_path),
            max_age=config.max_attempt_age,
            clock=clock,
            key=config.storage_key,
        )
        self.request_builder = AuthorizationRequestBuilder(
            config,
            self.state_store,
            pkce_manager=PKCEManager(crypto),
            crypto=crypto,
            clock=clock,
        )
        self.token_manager = OAuth2TokenManager(
            timeout=config.timeout, http_client=http_client
        )

    def start(self) -> str:
        """Begin a new attempt, replacing any pending one, and return its URL."""
        return self.request_builder.build().url

    async def handle_callback(self, callback: CallbackInput) -> CallbackResult:
        """Interpret one return redirect (one page load)."""
        interpreter = CallbackInterpreter(
            self.config, self.state_store, self.token_manager, clock=self._clock
        )
        return await interpreter.interpret(callback)

    def cancel(self) -> None:
        """Abandon the pending attempt so it can never be exchanged."""
        logger.debug("Cancelling pending authorization attempt")
        self.state_store.discard()

    @property
    def is_linking(self) -> bool:
        return self.state_store.has_pending()

    async def close(self) -> None:
        """Close the HTTP client if this client created it."""
        await self.token_manager.close()

    async def __aenter__(self) -> AccountLinkClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()
