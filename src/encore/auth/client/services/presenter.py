"""Status presentation for the linking callback page.

Drives the processing/success/error status from a ``CallbackResult``,
hands token material on, and schedules navigation away so that neither a
finished nor a failed flow leaves the user on the callback page.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from encore.auth.client.models.config import LinkConfig
from encore.auth.client.models.results import CallbackResult, FailureKind
from encore.auth.client.models.tokens import LinkedTokens

logger = logging.getLogger(__name__)

PROCESSING_MESSAGE = "Processing music account connection..."
SUCCESS_MESSAGE = "Music account connected successfully! Redirecting..."

FAILURE_MESSAGES: dict[FailureKind, str] = {
    FailureKind.AUTHORIZATION_DENIED: (
        "The connection was not approved. You can try again at any time."
    ),
    FailureKind.MISSING_VERIFIER: (
        "This connection request has expired or was already used. "
        "Please start the connection again."
    ),
    FailureKind.STATE_MISMATCH: (
        "This connection request could not be verified. If you started it in "
        "another tab, finish it there or start again."
    ),
    FailureKind.MISSING_CODE: (
        "The provider did not return an authorization code. Please try again."
    ),
    FailureKind.INVALID_GRANT: (
        "The authorization code was rejected, probably because it was already "
        "used or has expired. Please start the connection again."
    ),
    FailureKind.CLIENT_REJECTED: (
        "The provider rejected this site's configuration. Please contact the "
        "site administrators."
    ),
    FailureKind.TRANSPORT_ERROR: (
        "Could not reach the music service. Check your connection and try again."
    ),
    FailureKind.UNEXPECTED_PROVIDER_ERROR: (
        "The music service returned an unexpected error. Please try again later."
    ),
}


class TokenConsumer(Protocol):
    """Receives token material; owns its persistence and refresh."""

    def accept(self, tokens: LinkedTokens) -> object: ...


class Navigator(Protocol):
    def navigate(self, target: str) -> None: ...


class FlowStatus(str, Enum):
    PROCESSING = "processing"
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class StatusView:
    status: FlowStatus
    message: str
    detail: str | None = None
    redirect_to: str | None = None
    redirect_after: float | None = None


def message_for(kind: FailureKind) -> str:
    return FAILURE_MESSAGES[kind]


class FlowStatusPresenter:
    """Presents the outcome of a callback and schedules the way out."""

    def __init__(
        self,
        consumer: TokenConsumer,
        navigator: Navigator,
        success_delay: float = 2.0,
        failure_delay: float = 8.0,
        home_path: str = "/",
        success_path: str | None = None,
    ):
        self._consumer = consumer
        self._navigator = navigator
        self.success_delay = success_delay
        self.failure_delay = failure_delay
        self.home_path = home_path
        self.success_path = success_path or home_path

        self._view = StatusView(status=FlowStatus.PROCESSING, message=PROCESSING_MESSAGE)
        self._pending_navigation: asyncio.TimerHandle | None = None

    @classmethod
    def from_config(
        cls,
        config: LinkConfig,
        consumer: TokenConsumer,
        navigator: Navigator,
        success_path: str | None = None,
    ) -> FlowStatusPresenter:
        return cls(
            consumer,
            navigator,
            success_delay=config.success_redirect_delay,
            failure_delay=config.failure_redirect_delay,
            home_path=config.home_path,
            success_path=success_path,
        )

    @property
    def view(self) -> StatusView:
        return self._view

    @property
    def status(self) -> FlowStatus:
        return self._view.status

    @property
    def message(self) -> str:
        return self._view.message

    @property
    def navigation_pending(self) -> bool:
        handle = self._pending_navigation
        return handle is not None and not handle.cancelled()

    async def present(self, result: CallbackResult) -> StatusView | None:
        """Apply a callback result. Returns None for non-callback page loads."""
        if not result.is_applicable():
            return None

        if result.is_success() and result.tokens is not None:
            try:
                outcome = self._consumer.accept(result.tokens)
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception as e:
                logger.exception("Token consumer failed to accept linked tokens")
                return self._show_error(
                    "The music account was authorized but could not be saved. "
                    "Please try again.",
                    detail=str(e) or type(e).__name__,
                )

            self._view = StatusView(
                status=FlowStatus.SUCCESS,
                message=SUCCESS_MESSAGE,
                redirect_to=self.success_path,
                redirect_after=self.success_delay,
            )
            self._schedule_navigation(self.success_path, self.success_delay)
            return self._view

        failure = result.failure
        if failure is None:
            return self._show_error(
                "Unknown error during music account connection", detail=None
            )
        return self._show_error(message_for(failure.kind), detail=failure.message)

    def cancel(self) -> None:
        """Cancel a scheduled navigation, e.g. on page teardown."""
        if self._pending_navigation is not None:
            self._pending_navigation.cancel()
            self._pending_navigation = None

    def _show_error(self, message: str, detail: str | None) -> StatusView:
        self._view = StatusView(
            status=FlowStatus.ERROR,
            message=message,
            detail=detail,
            redirect_to=self.home_path,
            redirect_after=self.failure_delay,
        )
        self._schedule_navigation(self.home_path, self.failure_delay)
        return self._view

    def _schedule_navigation(self, target: str, delay: float) -> None:
        self.cancel()
        loop = asyncio.get_running_loop()
        self._pending_navigation = loop.call_later(delay, self._navigate, target)

    def _navigate(self, target: str) -> None:
        self._pending_navigation = None
        logger.debug(f"Navigating to {target}")
        self._navigator.navigate(target)
