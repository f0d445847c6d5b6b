"""Key-value persistence for handshake and token state.

The session manager never touches files directly. It is handed a
:class:`Storage` holding two :class:`KeyValueStore` scopes:

* :attr:`StorageScope.SESSION` -- scratch space for a login in progress
  (``oauth_state``, ``oauth_code_verifier``). Cleared as soon as the
  redirect-back has been validated.
* :attr:`StorageScope.DURABLE` -- the issued tokens (``access_token``,
  ``refresh_token``, ``token_expires_at``).

:class:`MemoryStore` backs tests and embedders; :class:`FileStore` keeps one
JSON object per file, written atomically with ``0o600`` permissions so that
tokens are never world-readable, even momentarily. Concurrent writers to the
same file resolve last-write-wins.

See Also:
    :class:`~pkcesession.auth.session.SessionManager` -- the only writer.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from enum import Enum
from pathlib import Path
from typing import Mapping, Optional

from pkcesession.config import atomic_write, get_data_dir

logger = logging.getLogger(__name__)

# Session scope
STATE_KEY = "oauth_state"
CODE_VERIFIER_KEY = "oauth_code_verifier"

# Durable scope
ACCESS_TOKEN_KEY = "access_token"
REFRESH_TOKEN_KEY = "refresh_token"
EXPIRES_AT_KEY = "token_expires_at"

TOKEN_KEYS = (ACCESS_TOKEN_KEY, REFRESH_TOKEN_KEY, EXPIRES_AT_KEY)
HANDSHAKE_KEYS = (STATE_KEY, CODE_VERIFIER_KEY)


class StorageScope(str, Enum):
    """The two lifetimes of stored values."""

    SESSION = "session"
    DURABLE = "durable"


class KeyValueStore(ABC):
    """String-to-string store with ``get`` / ``set`` / ``remove``."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the value stored under *key*, or ``None``."""
        ...

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Store *value* under *key*, replacing any previous value."""
        ...

    @abstractmethod
    def remove(self, key: str) -> None:
        """Delete *key*. A no-op when the key is absent."""
        ...

    def update(self, values: Mapping[str, Optional[str]]) -> None:
        """Apply several writes; a ``None`` value removes that key.

        The default applies them one at a time. :class:`FileStore`
        overrides this with a single atomic file replacement.
        """
        for key, value in values.items():
            if value is None:
                self.remove(key)
            else:
                self.set(key, value)


class MemoryStore(KeyValueStore):
    """In-process store backed by a dict."""

    def __init__(self, initial: Optional[Mapping[str, str]] = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def snapshot(self) -> dict[str, str]:
        """Return a copy of the stored entries."""
        return dict(self._data)


class FileStore(KeyValueStore):
    """Store persisted as a single JSON object on disk.

    Every write rewrites the whole file atomically. A missing, unreadable
    or corrupt file reads as empty; the file is deleted once its last key
    is removed.

    Args:
        path: Location of the JSON file. Parent directories are created on
            first write.
    """

    def __init__(self, path: Path) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        """The filesystem path of the backing file."""
        return self._path

    def get(self, key: str) -> Optional[str]:
        return self._read().get(key)

    def set(self, key: str, value: str) -> None:
        self.update({key: value})

    def remove(self, key: str) -> None:
        self.update({key: None})

    def update(self, values: Mapping[str, Optional[str]]) -> None:
        data = self._read()
        for key, value in values.items():
            if value is None:
                data.pop(key, None)
            else:
                data[key] = value
        self._write(data)

    def _read(self) -> dict[str, str]:
        if not self._path.is_file():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, ValueError, OSError) as exc:
            logger.warning("Ignoring unreadable store %s: %s", self._path, exc)
            return {}
        if not isinstance(data, dict):
            logger.warning("Ignoring store %s: expected a JSON object", self._path)
            return {}
        return {str(k): str(v) for k, v in data.items() if v is not None}

    def _write(self, data: dict[str, str]) -> None:
        if not data:
            if self._path.is_file():
                self._path.unlink()
            return
        atomic_write(self._path, json.dumps(data, indent=2) + "\n", mode=0o600)


class Storage:
    """The two storage scopes handed to a session manager.

    Args:
        session: Scratch store for an in-flight handshake.
        durable: Store for issued tokens.

    Example::

        storage = Storage.in_memory()
        storage.session.set("oauth_state", "abc")
        assert storage.scope(StorageScope.SESSION).get("oauth_state") == "abc"
    """

    def __init__(self, session: KeyValueStore, durable: KeyValueStore) -> None:
        self.session = session
        self.durable = durable

    def scope(self, scope: StorageScope) -> KeyValueStore:
        """Return the store for *scope*."""
        if scope is StorageScope.SESSION:
            return self.session
        return self.durable

    @classmethod
    def in_memory(cls) -> Storage:
        """Create a storage pair backed by two fresh :class:`MemoryStore` instances."""
        return cls(session=MemoryStore(), durable=MemoryStore())

    @classmethod
    def for_profile(cls, profile_name: str) -> Storage:
        """Create file-backed storage for a profile.

        Files live under ``<data_dir>/sessions/<profile_name>/``:
        ``handshake.json`` (session scope) and ``tokens.json`` (durable scope).
        """
        base = get_data_dir() / "sessions" / profile_name
        return cls(
            session=FileStore(base / "handshake.json"),
            durable=FileStore(base / "tokens.json"),
        )
