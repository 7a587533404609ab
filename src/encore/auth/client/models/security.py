"""Security-related models for the PKCE linking flow.

Contains the PKCE parameter set, the pending attempt persisted across the
provider redirect, and the syntactic checks both of them rely on.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from pydantic import BaseModel, ConfigDict, Field, field_validator

# RFC 7636 Section 4.1: unreserved characters, 43-128 long
_VERIFIER_PATTERN = re.compile(r"^[A-Za-z0-9\-._~]{43,128}$")
# base64url(SHA-256) without padding is always 43 characters
_CHALLENGE_PATTERN = re.compile(r"^[A-Za-z0-9\-_]{43}$")


def is_valid_verifier(value: object) -> bool:
    """Check a code verifier against RFC 7636 length and alphabet rules."""
    return isinstance(value, str) and _VERIFIER_PATTERN.fullmatch(value) is not None


def is_valid_challenge(value: object) -> bool:
    """Check an S256 code challenge for length and base64url alphabet."""
    return isinstance(value, str) and _CHALLENGE_PATTERN.fullmatch(value) is not None


@dataclass(frozen=True)
class PKCEParameters:
    """PKCE (Proof Key for Code Exchange) parameters (RFC 7636).

    Generated fresh for each authorization attempt.
    """

    code_verifier: str = field(repr=False)
    code_challenge: str = field()
    code_challenge_method: str = field(default="S256")

    def __post_init__(self) -> None:
        if not is_valid_verifier(self.code_verifier):
            raise ValueError("code_verifier must be 43-128 unreserved characters")
        if not is_valid_challenge(self.code_challenge):
            raise ValueError("code_challenge must be 43 base64url characters")
        if self.code_challenge_method != "S256":
            raise ValueError("Only S256 code challenge method is supported")


class PendingAttempt(BaseModel):
    """Authorization attempt persisted across the provider redirect.

    At most one exists at a time. It is consumed exactly once by the
    callback interpreter.
    """

    model_config = ConfigDict(frozen=True)

    code_verifier: str = Field(repr=False)
    state: str = Field(min_length=1)
    created_at: float  # Unix timestamp

    @field_validator("code_verifier")
    @classmethod
    def validate_code_verifier(cls, v: str) -> str:
        if not is_valid_verifier(v):
            raise ValueError("Stored code_verifier is malformed")
        return v

    def age(self, now: float) -> float:
        return now - self.created_at
