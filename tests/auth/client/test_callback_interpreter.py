"""Tests for callback interpretation.

High-impact tests covering the callback state machine:
- Non-callback page loads leave stored state untouched
- Denial, missing verifier, state mismatch and missing code short-circuit
  before any exchange
- Exchange outcomes map to the failure taxonomy
- The pending attempt is consumed exactly once
"""

from unittest.mock import AsyncMock

import httpx
import pytest

from encore.auth.client.models.errors import (
    CallbackAlreadyHandledError,
    PKCEError,
)
from encore.auth.client.models.results import CallbackOutcome, FailureKind, FlowState
from encore.auth.client.models.security import PendingAttempt
from encore.auth.client.services.callback import CallbackInterpreter
from encore.auth.client.services.flow import AuthorizationRequestBuilder
from tests.auth.client.helpers import RFC_VERIFIER, make_response

CALLBACK_BASE = "https://encore.example.com/"


class InterpreterTestBase:
    @pytest.fixture(autouse=True)
    def setup(self, config, state_store, token_manager, clock):
        self.config = config
        self.state_store = state_store
        self.token_manager = token_manager
        self.http = token_manager._http_client
        self.clock = clock
        self.interpreter = CallbackInterpreter(
            config, state_store, token_manager, clock=clock
        )

    def store_attempt(self, state: str = "S1", age: float = 0.0) -> PendingAttempt:
        attempt = PendingAttempt(
            code_verifier=RFC_VERIFIER, state=state, created_at=self.clock() - age
        )
        self.state_store.save(attempt)
        return attempt

    def new_interpreter(self) -> CallbackInterpreter:
        return CallbackInterpreter(
            self.config, self.state_store, self.token_manager, clock=self.clock
        )


class TestNotApplicable(InterpreterTestBase):
    @pytest.mark.parametrize(
        "callback",
        [
            CALLBACK_BASE,
            CALLBACK_BASE + "?utm_source=newsletter",
            CALLBACK_BASE + "#code=abc&state=S1",
            "",
            {},
        ],
    )
    async def test_page_without_auth_parameters(self, callback):
        # Arrange
        attempt = self.store_attempt()

        # Act
        result = await self.interpreter.interpret(callback)

        # Assert
        assert result.outcome is CallbackOutcome.NOT_APPLICABLE
        assert not result.is_applicable()
        assert self.interpreter.state is FlowState.IDLE
        assert self.state_store.take() == attempt
        self.http.post.assert_not_called()


class TestShortCircuits(InterpreterTestBase):
    async def test_error_parameter_is_authorization_denied(self):
        # Arrange
        self.store_attempt()

        # Act
        result = await self.interpreter.interpret(
            CALLBACK_BASE + "?error=access_denied&error_description=User+declined"
        )

        # Assert
        assert result.is_failure()
        assert result.kind is FailureKind.AUTHORIZATION_DENIED
        assert result.failure.provider_error == "access_denied"
        assert "access_denied" in result.failure.message
        assert "User declined" in result.failure.message
        assert self.interpreter.state is FlowState.FAILED
        self.http.post.assert_not_called()

    async def test_denial_does_not_consult_attempt_age(self):
        # Arrange - attempt long expired; denial must still be reported as such
        self.store_attempt(age=10_000)

        # Act
        result = await self.interpreter.interpret(CALLBACK_BASE + "?error=access_denied")

        # Assert
        assert result.kind is FailureKind.AUTHORIZATION_DENIED
        assert not self.state_store.has_pending()

    async def test_denial_without_any_stored_attempt(self):
        result = await self.interpreter.interpret("error=access_denied&state=S1")

        assert result.kind is FailureKind.AUTHORIZATION_DENIED

    async def test_no_stored_attempt_is_missing_verifier(self):
        # Act
        result = await self.interpreter.interpret(CALLBACK_BASE + "?code=ABC&state=S1")

        # Assert
        assert result.kind is FailureKind.MISSING_VERIFIER
        self.http.post.assert_not_called()

    async def test_expired_attempt_is_missing_verifier(self):
        # Arrange
        self.store_attempt(age=601)

        # Act
        result = await self.interpreter.interpret(CALLBACK_BASE + "?code=ABC&state=S1")

        # Assert
        assert result.kind is FailureKind.MISSING_VERIFIER
        self.http.post.assert_not_called()

    async def test_corrupted_attempt_is_missing_verifier(self, storage):
        # Arrange
        storage.set_item(self.state_store.key, '{"code_verifier": "x"}')

        # Act
        result = await self.interpreter.interpret(CALLBACK_BASE + "?code=ABC&state=S1")

        # Assert
        assert result.kind is FailureKind.MISSING_VERIFIER

    async def test_state_mismatch_blocks_exchange_even_with_valid_code(self):
        # Arrange
        self.store_attempt(state="S1")

        # Act
        result = await self.interpreter.interpret(CALLBACK_BASE + "?code=ABC&state=S2")

        # Assert
        assert result.kind is FailureKind.STATE_MISMATCH
        self.http.post.assert_not_called()
        assert not self.state_store.has_pending()

    async def test_missing_state_with_code_is_state_mismatch(self):
        # Arrange
        self.store_attempt(state="S1")

        # Act
        result = await self.interpreter.interpret(CALLBACK_BASE + "?code=ABC")

        # Assert
        assert result.kind is FailureKind.STATE_MISMATCH
        self.http.post.assert_not_called()

    async def test_non_ascii_state_is_state_mismatch(self):
        # Arrange
        self.store_attempt(state="S1")

        # Act
        result = await self.interpreter.interpret(
            CALLBACK_BASE + "?code=ABC&state=%C3%A9t%C3%A9"
        )

        # Assert
        assert result.kind is FailureKind.STATE_MISMATCH

    async def test_missing_code_after_valid_state(self):
        # Arrange
        self.store_attempt(state="S1")

        # Act
        result = await self.interpreter.interpret(CALLBACK_BASE + "?state=S1")

        # Assert
        assert result.kind is FailureKind.MISSING_CODE
        self.http.post.assert_not_called()

    async def test_empty_code_is_missing_code(self):
        # Arrange
        self.store_attempt(state="S1")

        # Act
        result = await self.interpreter.interpret(CALLBACK_BASE + "?code=&state=S1")

        # Assert
        assert result.kind is FailureKind.MISSING_CODE


class TestExchange(InterpreterTestBase):
    async def test_successful_exchange(self):
        # Arrange
        self.store_attempt(state="S1")
        self.http.post.return_value = make_response(
            200,
            {
                "access_token": "tok",
                "token_type": "Bearer",
                "expires_in": 3600,
                "refresh_token": "ref",
            },
        )

        # Act
        result = await self.interpreter.interpret(CALLBACK_BASE + "?code=ABC&state=S1")

        # Assert
        assert result.is_success()
        assert result.tokens.access_token == "tok"
        assert result.tokens.refresh_token == "ref"
        assert result.tokens.expires_at == self.clock() + 3600
        assert result.failure is None
        assert self.interpreter.state is FlowState.SUCCEEDED

        form_data = self.http.post.call_args[1]["data"]
        assert form_data["code"] == "ABC"
        assert form_data["code_verifier"] == RFC_VERIFIER
        assert form_data["redirect_uri"] == "https://encore.example.com/"
        assert form_data["client_id"] == "client-456"
        assert self.http.post.call_args[0][0] == self.config.token_endpoint

    async def test_accepts_parameter_mapping(self):
        # Arrange
        self.store_attempt(state="S1")
        self.http.post.return_value = make_response(200, {"access_token": "tok"})

        # Act
        result = await self.interpreter.interpret({"code": "ABC", "state": "S1"})

        # Assert
        assert result.is_success()
        assert result.tokens.expires_at == self.clock() + 3600

    @pytest.mark.parametrize(
        "status,kind",
        [
            (400, FailureKind.INVALID_GRANT),
            (401, FailureKind.CLIENT_REJECTED),
            (403, FailureKind.UNEXPECTED_PROVIDER_ERROR),
            (500, FailureKind.UNEXPECTED_PROVIDER_ERROR),
        ],
    )
    async def test_error_statuses_map_to_kinds(self, status, kind):
        # Arrange
        self.store_attempt(state="S1")
        self.http.post.return_value = make_response(
            status, {"error": "some_error"}, text='{"error": "some_error"}'
        )

        # Act
        result = await self.interpreter.interpret(CALLBACK_BASE + "?code=ABC&state=S1")

        # Assert
        assert result.kind is kind
        assert result.failure.status_code == status
        assert result.failure.provider_error == "some_error"
        assert self.interpreter.state is FlowState.FAILED

    async def test_transport_failure(self):
        # Arrange
        self.store_attempt(state="S1")
        self.http.post.side_effect = httpx.ConnectTimeout("timed out")

        # Act
        result = await self.interpreter.interpret(CALLBACK_BASE + "?code=ABC&state=S1")

        # Assert
        assert result.kind is FailureKind.TRANSPORT_ERROR
        assert result.kind.retryable
        assert self.http.post.await_count == 1

    async def test_attempt_is_consumed_even_when_exchange_fails(self):
        # Arrange
        self.store_attempt(state="S1")
        self.http.post.return_value = make_response(400, {"error": "invalid_grant"})

        # Act
        await self.interpreter.interpret(CALLBACK_BASE + "?code=ABC&state=S1")

        # Assert
        assert not self.state_store.has_pending()

    async def test_replayed_callback_url_fails_the_second_time(self):
        # Arrange
        self.store_attempt(state="S1")
        self.http.post.return_value = make_response(200, {"access_token": "tok"})
        url = CALLBACK_BASE + "?code=ABC&state=S1"

        # Act - two page loads of the same URL
        first = await self.interpreter.interpret(url)
        second = await self.new_interpreter().interpret(url)

        # Assert
        assert first.is_success()
        assert second.kind is FailureKind.MISSING_VERIFIER
        assert self.http.post.await_count == 1


class TestLifecycle(InterpreterTestBase):
    async def test_second_interpret_after_terminal_state_raises(self):
        # Arrange
        await self.interpreter.interpret(CALLBACK_BASE + "?error=access_denied")

        # Act & Assert
        with pytest.raises(CallbackAlreadyHandledError):
            await self.interpreter.interpret(CALLBACK_BASE + "?error=access_denied")

    async def test_not_applicable_keeps_interpreter_reusable(self):
        # Arrange
        await self.interpreter.interpret(CALLBACK_BASE)

        # Act
        result = await self.interpreter.interpret(CALLBACK_BASE + "?error=access_denied")

        # Assert
        assert result.kind is FailureKind.AUTHORIZATION_DENIED

    async def test_unexpected_internal_fault_propagates(self):
        # Arrange
        self.store_attempt(state="S1")
        self.token_manager.exchange_code_for_token = AsyncMock(
            side_effect=PKCEError("crypto unavailable")
        )

        # Act & Assert
        with pytest.raises(PKCEError):
            await self.interpreter.interpret(CALLBACK_BASE + "?code=ABC&state=S1")


class TestEndToEnd(InterpreterTestBase):
    async def test_happy_path_from_build_to_tokens(self):
        # Arrange
        start = AuthorizationRequestBuilder(
            self.config, self.state_store, clock=self.clock
        ).build()
        self.http.post.return_value = make_response(
            200, {"access_token": "tok", "expires_in": 3600}
        )
        self.clock.advance(30)

        # Act
        result = await self.interpreter.interpret(
            f"{CALLBACK_BASE}?code=ABC&state={start.attempt.state}"
        )

        # Assert
        assert result.is_success()
        assert result.tokens.access_token == "tok"
        assert result.tokens.expires_at == pytest.approx(self.clock() + 3600)
        form_data = self.http.post.call_args[1]["data"]
        assert form_data["code_verifier"] == start.attempt.code_verifier

    async def test_older_tab_fails_after_newer_attempt_started(self):
        # Arrange - tab A starts, then tab B starts and supersedes it
        builder = AuthorizationRequestBuilder(
            self.config, self.state_store, clock=self.clock
        )
        first = builder.build()
        builder.build()

        # Act - tab A's provider redirect comes back
        result = await self.interpreter.interpret(
            f"{CALLBACK_BASE}?code=ABC&state={first.attempt.state}"
        )

        # Assert
        assert result.kind is FailureKind.STATE_MISMATCH
        self.http.post.assert_not_called()

    async def test_denial_end_to_end(self):
        # Arrange
        AuthorizationRequestBuilder(self.config, self.state_store, clock=self.clock).build()

        # Act
        result = await self.interpreter.interpret(CALLBACK_BASE + "?error=access_denied")

        # Assert
        assert result.outcome is CallbackOutcome.FAILED
        assert result.kind is FailureKind.AUTHORIZATION_DENIED
