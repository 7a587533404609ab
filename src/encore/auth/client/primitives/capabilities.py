"""Injected capabilities for randomness, hashing and durable key-value storage.

The linking flow never reaches for process globals directly. Everything it
needs from the runtime comes through these small protocols so the flow can
be exercised with fakes and moved between runtimes.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import secrets
import stat
import tempfile
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)


class CryptoProvider(Protocol):
    """Source of secure random bytes and SHA-256 digests."""

    def random_bytes(self, n: int) -> bytes: ...

    def sha256(self, data: bytes) -> bytes: ...


class KeyValueStorage(Protocol):
    """Scoped string key-value storage."""

    def get_item(self, key: str) -> str | None: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...


class SystemCrypto:
    """Crypto provider backed by the operating system CSPRNG and hashlib."""

    def random_bytes(self, n: int) -> bytes:
        return secrets.token_bytes(n)

    def sha256(self, data: bytes) -> bytes:
        return hashlib.sha256(data).digest()


class MemoryStorage:
    """Process-local storage. Does not survive a restart."""

    def __init__(self, initial: dict[str, str] | None = None):
        self._items: dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def __contains__(self, key: object) -> bool:
        return key in self._items

    def __len__(self) -> int:
        return len(self._items)


class FileStorage:
    """Durable storage kept as a JSON object in a single file.

    Survives process teardown. Writes go through a temporary file and an
    atomic replace; the file is readable by its owner only on POSIX.
    """

    def __init__(self, path: str | os.PathLike[str]):
        self.path = Path(path)

    def get_item(self, key: str) -> str | None:
        value = self._load().get(key)
        return value if isinstance(value, str) else None

    def set_item(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        self._write(data)

    def remove_item(self, key: str) -> None:
        data = self._load()
        if key in data:
            del data[key]
            self._write(data)

    def _load(self) -> dict[str, object]:
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable storage file {self.path}: {e}")
            return {}

        if not isinstance(data, dict):
            logger.warning(f"Ignoring storage file {self.path}: not a JSON object")
            return {}
        return data

    def _write(self, data: dict[str, object]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=".storage-")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f)
            if os.name != "nt":
                os.chmod(tmp_name, stat.S_IRUSR | stat.S_IWUSR)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
