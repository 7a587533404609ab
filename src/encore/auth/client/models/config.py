"""Client configuration for the music account linking flow."""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError, field_validator

from encore.auth.client.models.errors import ConfigurationError
from encore.auth.client.services.security import validate_redirect_uri

DEFAULT_SCOPES = [
    "playlist-read-private",
    "playlist-read-collaborative",
    "playlist-modify-public",
    "playlist-modify-private",
    "user-read-private",
    "user-read-email",
]

DEFAULT_STORAGE_PATH = Path.home() / ".encore" / "spotify_link.json"


class LinkConfig(BaseModel):
    """Public-client OAuth settings plus flow timing.

    ``redirect_uri`` is sent byte-for-byte in both the authorization request
    and the token exchange; it must match the value registered with the
    provider, trailing slash included.
    """

    client_id: str = Field(min_length=1)
    redirect_uri: str
    authorization_endpoint: str = "https://accounts.spotify.com/authorize"
    token_endpoint: str = "https://accounts.spotify.com/api/token"
    scopes: list[str] = Field(
        default_factory=lambda: list(DEFAULT_SCOPES), min_length=1
    )
    show_dialog: bool = False

    timeout: float = Field(default=10.0, gt=0)
    max_attempt_age: float = Field(default=600.0, gt=0)  # seconds
    success_redirect_delay: float = Field(default=2.0, ge=0)
    failure_redirect_delay: float = Field(default=8.0, ge=0)
    home_path: str = "/"
    storage_key: str = "encore.spotify.pending_attempt"
    storage_path: Path = DEFAULT_STORAGE_PATH

    @field_validator("redirect_uri")
    @classmethod
    def validate_redirect(cls, v: str) -> str:
        if not validate_redirect_uri(v):
            raise ValueError(f"Redirect URI must use HTTPS or a loopback host: {v}")
        return v

    @field_validator("authorization_endpoint", "token_endpoint")
    @classmethod
    def validate_endpoints(cls, v: str) -> str:
        if not v.startswith("https://"):
            raise ValueError(f"Provider endpoint must use HTTPS: {v}")
        return v

    @property
    def scope(self) -> str:
        return " ".join(self.scopes)

    @classmethod
    def from_env(
        cls, prefix: str = "SPOTIFY_", environ: Mapping[str, str] | None = None
    ) -> LinkConfig:
        """Build a configuration from environment variables.

        Reads ``<prefix>CLIENT_ID`` and ``<prefix>REDIRECT_URI`` (required),
        and optionally ``<prefix>SCOPES`` (space separated),
        ``<prefix>AUTH_TIMEOUT``, ``<prefix>MAX_ATTEMPT_AGE`` and
        ``<prefix>STORAGE_PATH``.

        Raises:
            ConfigurationError: If a required variable is missing or invalid
        """
        env = os.environ if environ is None else environ

        values: dict[str, object] = {}
        for name in ("CLIENT_ID", "REDIRECT_URI"):
            value = env.get(prefix + name)
            if not value:
                raise ConfigurationError(f"Missing required setting {prefix}{name}")
            values[name.lower()] = value

        if scopes := env.get(prefix + "SCOPES"):
            values["scopes"] = scopes.split()
        if timeout := env.get(prefix + "AUTH_TIMEOUT"):
            values["timeout"] = timeout
        if max_age := env.get(prefix + "MAX_ATTEMPT_AGE"):
            values["max_attempt_age"] = max_age
        if storage_path := env.get(prefix + "STORAGE_PATH"):
            values["storage_path"] = storage_path

        try:
            return cls(**values)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid link configuration: {e}") from e
