"""Result models for the authorization callback.

A callback either succeeds with token material, fails with one of a small
set of failure kinds, or turns out not to be a callback at all.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from encore.auth.client.models.tokens import LinkedTokens


class FlowState(str, Enum):
    """Lifecycle of a single callback interpretation."""

    IDLE = "idle"
    PROCESSING = "processing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class CallbackOutcome(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    NOT_APPLICABLE = "not_applicable"


class FailureKind(str, Enum):
    """Why a linking attempt failed. All kinds end the current attempt."""

    AUTHORIZATION_DENIED = "authorization_denied"
    MISSING_VERIFIER = "missing_verifier"
    STATE_MISMATCH = "state_mismatch"
    MISSING_CODE = "missing_code"
    INVALID_GRANT = "invalid_grant"
    CLIENT_REJECTED = "client_rejected"
    TRANSPORT_ERROR = "transport_error"
    UNEXPECTED_PROVIDER_ERROR = "unexpected_provider_error"

    @property
    def retryable(self) -> bool:
        """Whether the caller may start a fresh attempt and expect a different result."""
        return self is FailureKind.TRANSPORT_ERROR


@dataclass(frozen=True)
class CallbackFailure:
    kind: FailureKind
    message: str
    status_code: int | None = None
    provider_error: str | None = None


@dataclass(frozen=True)
class CallbackResult:
    """Tagged outcome of interpreting a return redirect.

    Exactly one of ``tokens`` and ``failure`` is set for the succeeded and
    failed outcomes; neither is set when the page load was not a callback.
    """

    outcome: CallbackOutcome
    tokens: LinkedTokens | None = None
    failure: CallbackFailure | None = None

    @classmethod
    def succeeded(cls, tokens: LinkedTokens) -> CallbackResult:
        return cls(outcome=CallbackOutcome.SUCCEEDED, tokens=tokens)

    @classmethod
    def failed(
        cls,
        kind: FailureKind,
        message: str,
        status_code: int | None = None,
        provider_error: str | None = None,
    ) -> CallbackResult:
        return cls(
            outcome=CallbackOutcome.FAILED,
            failure=CallbackFailure(
                kind=kind,
                message=message,
                status_code=status_code,
                provider_error=provider_error,
            ),
        )

    @classmethod
    def not_applicable(cls) -> CallbackResult:
        return cls(outcome=CallbackOutcome.NOT_APPLICABLE)

    def is_success(self) -> bool:
        return self.outcome is CallbackOutcome.SUCCEEDED

    def is_failure(self) -> bool:
        return self.outcome is CallbackOutcome.FAILED

    def is_applicable(self) -> bool:
        return self.outcome is not CallbackOutcome.NOT_APPLICABLE

    @property
    def kind(self) -> FailureKind | None:
        """Failure kind, or None for non-failure outcomes."""
        return self.failure.kind if self.failure else None
