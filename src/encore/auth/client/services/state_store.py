"""Redirect state persistence for the PKCE linking flow.

Holds the single pending authorization attempt (code verifier and state
token) while the browser is away at the provider.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from pydantic import ValidationError

from encore.auth.client.models.security import PendingAttempt
from encore.auth.client.primitives.capabilities import KeyValueStorage

logger = logging.getLogger(__name__)

DEFAULT_STORAGE_KEY = "encore.spotify.pending_attempt"
DEFAULT_MAX_AGE = 600.0


class RedirectStateStore:
    """Stores at most one pending attempt, readable exactly once.

    Saving a new attempt replaces any earlier one, so an abandoned attempt
    can never be exchanged later. ``take`` reads and removes in one call,
    which makes replaying a callback URL fail the second time. Attempts older
    than ``max_age`` seconds read as absent.
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        max_age: float = DEFAULT_MAX_AGE,
        clock: Callable[[], float] = time.time,
        key: str = DEFAULT_STORAGE_KEY,
    ):
        if max_age <= 0:
            raise ValueError("max_age must be positive")
        self._storage = storage
        self.max_age = max_age
        self._clock = clock
        self.key = key

    def save(self, attempt: PendingAttempt) -> None:
        if self._storage.get_item(self.key) is not None:
            logger.debug("Replacing previous pending authorization attempt")
        self._storage.set_item(self.key, attempt.model_dump_json())

    def take(self) -> PendingAttempt | None:
        """Remove and return the pending attempt if it is present and fresh."""
        raw = self._storage.get_item(self.key)
        if raw is None:
            return None
        self._storage.remove_item(self.key)

        try:
            attempt = PendingAttempt.model_validate_json(raw)
        except ValidationError as e:
            logger.warning(
                f"Discarding malformed pending attempt ({e.error_count()} errors)"
            )
            return None

        age = attempt.age(self._clock())
        if age < 0 or age > self.max_age:
            logger.warning(
                f"Discarding pending attempt aged {age:.0f}s "
                f"(max {self.max_age:.0f}s)"
            )
            return None

        return attempt

    def discard(self) -> None:
        """Forget any pending attempt without reading it."""
        self._storage.remove_item(self.key)

    def has_pending(self) -> bool:
        return self._storage.get_item(self.key) is not None
