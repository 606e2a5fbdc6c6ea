# OAuth2 record storage.
# Created: 2026-10-02
#
# The Store is the only place durable state lives. Every mutating call is
# atomic per record; compare_and_set is the primitive the grant exchanger
# relies on for single-use codes and refresh rotation.
#
# MemoryStore keeps records in dicts behind one lock. FileStore layers JSON
# persistence on top so clients and tokens survive restarts.

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Protocol

from pydantic import BaseModel, ValidationError

from keyhouse.oauth2.errors import StorageUnavailable
from keyhouse.oauth2.models import AccessToken, AuthorizationCode, Client, RefreshToken

logger = logging.getLogger(__name__)

CLIENT = "client"
CODE = "code"
ACCESS_TOKEN = "access_token"
REFRESH_TOKEN = "refresh_token"

RECORD_TYPES: dict[str, type[BaseModel]] = {
    CLIENT: Client,
    CODE: AuthorizationCode,
    ACCESS_TOKEN: AccessToken,
    REFRESH_TOKEN: RefreshToken,
}


class Store(Protocol):
    """Protocol for storage backends.

    Implement this to back the authorization server with a real database.
    ``compare_and_set`` must be a single atomic conditional update.
    """

    def acquire(self) -> Any:
        """Context manager holding a store handle for one request."""
        ...

    def get(self, kind: str, key: str) -> BaseModel | None: ...

    def put(self, kind: str, key: str, record: BaseModel) -> None: ...

    def create(self, kind: str, key: str, record: BaseModel) -> bool:
        """Insert *record* only if *key* is free. Returns False on collision."""
        ...

    def compare_and_set(
        self, kind: str, key: str, field: str, expected: Any, new: Any
    ) -> bool:
        """Set ``record.field = new`` iff it currently equals *expected*."""
        ...

    def delete(self, kind: str, key: str) -> bool: ...


class MemoryStore:
    """Thread-safe in-memory store."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._records: dict[str, dict[str, BaseModel]] = {kind: {} for kind in RECORD_TYPES}
        self._handles = 0

    @property
    def open_handles(self) -> int:
        return self._handles

    @contextmanager
    def acquire(self) -> Iterator[MemoryStore]:
        with self._lock:
            self._handles += 1
        try:
            yield self
        finally:
            with self._lock:
                self._handles -= 1

    def _table(self, kind: str) -> dict[str, BaseModel]:
        try:
            return self._records[kind]
        except KeyError:
            raise ValueError(f"Unknown record kind: {kind}") from None

    def get(self, kind: str, key: str) -> BaseModel | None:
        with self._lock:
            record = self._table(kind).get(key)
            return record.model_copy() if record is not None else None

    def put(self, kind: str, key: str, record: BaseModel) -> None:
        with self._lock:
            self._replace(kind, key, record.model_copy())

    def create(self, kind: str, key: str, record: BaseModel) -> bool:
        with self._lock:
            table = self._table(kind)
            if key in table:
                return False
            self._replace(kind, key, record.model_copy())
            return True

    def compare_and_set(
        self, kind: str, key: str, field: str, expected: Any, new: Any
    ) -> bool:
        with self._lock:
            table = self._table(kind)
            record = table.get(key)
            if record is None or getattr(record, field) != expected:
                return False
            self._replace(kind, key, record.model_copy(update={field: new}))
            return True

    def delete(self, kind: str, key: str) -> bool:
        with self._lock:
            table = self._table(kind)
            if key not in table:
                return False
            self._replace(kind, key, None)
            return True

    def _replace(self, kind: str, key: str, record: BaseModel | None) -> None:
        # Lock held. A failed commit rolls the table back to its previous state.
        table = self._table(kind)
        previous = table.get(key)
        if record is None:
            table.pop(key, None)
        else:
            table[key] = record
        try:
            self._commit(kind)
        except StorageUnavailable:
            if previous is None:
                table.pop(key, None)
            else:
                table[key] = previous
            raise

    def count(self, kind: str) -> int:
        with self._lock:
            return len(self._table(kind))

    def _commit(self, kind: str) -> None:
        """Hook called with the lock held after every mutation of *kind*."""


class FileStore(MemoryStore):
    """JSON-file backed store.

    Authorization codes stay in memory only (10 minute TTL); clients and
    tokens are written to disk after every mutation so they survive restarts.
    """

    _PERSISTED = (CLIENT, ACCESS_TOKEN, REFRESH_TOKEN)

    def __init__(self, path: Path):
        super().__init__()
        self._path = path
        self._load()

    def _load(self) -> None:
        if not self._path.exists():
            return
        try:
            data = json.loads(self._path.read_text())
        except (json.JSONDecodeError, OSError) as exc:
            raise StorageUnavailable(f"Cannot read store file {self._path}: {exc}") from exc

        for kind in self._PERSISTED:
            model = RECORD_TYPES[kind]
            for key, raw in data.get(kind, {}).items():
                try:
                    self._records[kind][key] = model.model_validate(raw)
                except ValidationError:
                    logger.warning("Skipping malformed %s record in %s", kind, self._path)
        logger.debug(
            "Loaded %d clients, %d access tokens from %s",
            len(self._records[CLIENT]),
            len(self._records[ACCESS_TOKEN]),
            self._path,
        )

    def _commit(self, kind: str) -> None:
        if kind not in self._PERSISTED:
            return
        data = {
            kind: {key: rec.model_dump(mode="json") for key, rec in self._records[kind].items()}
            for kind in self._PERSISTED
        }
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self._path.with_suffix(".tmp")
            tmp.write_text(json.dumps(data, indent=2))
            try:
                tmp.chmod(0o600)
            except OSError:
                pass
            tmp.replace(self._path)
        except OSError as exc:
            raise StorageUnavailable(f"Cannot write store file {self._path}: {exc}") from exc
