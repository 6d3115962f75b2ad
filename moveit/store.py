"""Whole-document persistence for the operations store.

The store holds a handful of top-level collections keyed by name
(``materials``, ``transactions``, ``pendingCollections``, ``users``, ``jobs``,
``notifications``, ``tracking``). Every logical operation loads all of them,
mutates the in-memory copy and writes everything back::

    with store.transaction() as state:
        ...mutate state...

The block holds the store's mutex for its whole duration, and an exception
raised inside it skips the save so nothing half-done is ever persisted.
"""

from __future__ import annotations

import copy
import json
import logging
import os
import tempfile
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

from flask import current_app
from sqlalchemy.orm.attributes import flag_modified

from moveit.extensions import db
from moveit.models import StoreDocument

logger = logging.getLogger(__name__)

State = dict[str, Any]

COLLECTION_KEYS: tuple[str, ...] = (
    "users",
    "jobs",
    "notifications",
    "tracking",
    "materials",
    "transactions",
    "pendingCollections",
)


class DocumentStore:
    backend = "abstract"

    def __init__(self) -> None:
        self._lock = threading.RLock()

    def load(self) -> State:
        raise NotImplementedError

    def save(self, state: State) -> None:
        raise NotImplementedError

    @contextmanager
    def transaction(self) -> Iterator[State]:
        with self._lock:
            state = self.load()
            yield state
            self.save(state)

    def read(self) -> State:
        """Return a consistent snapshot for read-only requests."""

        with self._lock:
            return self.load()


class MemoryStore(DocumentStore):
    backend = "memory"

    def __init__(self, initial: State | None = None) -> None:
        super().__init__()
        self._state: State = copy.deepcopy(initial) if initial else {}

    def load(self) -> State:
        return copy.deepcopy(self._state)

    def save(self, state: State) -> None:
        self._state = copy.deepcopy(state)


class JsonFileStore(DocumentStore):
    backend = "json"

    def __init__(self, path: str | os.PathLike[str]) -> None:
        super().__init__()
        self.path = Path(path)

    def load(self) -> State:
        if not self.path.exists():
            return {}
        with self.path.open("r", encoding="utf-8") as handle:
            raw = handle.read()
        if not raw.strip():
            return {}
        state = json.loads(raw)
        if not isinstance(state, dict):
            raise ValueError(f"Store file {self.path} does not hold a JSON object")
        return state

    def save(self, state: State) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(state, handle, indent=2)
            os.replace(tmp_name, self.path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise


class SqlDocumentStore(DocumentStore):
    """Keeps each collection in its own ``store_document`` row.

    Must be used inside a Flask application context.
    """

    backend = "sqlalchemy"

    def load(self) -> State:
        rows = StoreDocument.query.all()
        return {row.key: copy.deepcopy(row.payload) for row in rows}

    def save(self, state: State) -> None:
        existing = {row.key: row for row in StoreDocument.query.all()}
        try:
            for key, value in state.items():
                row = existing.get(key)
                if row is None:
                    db.session.add(StoreDocument(key=key, payload=copy.deepcopy(value)))
                    continue
                row.payload = copy.deepcopy(value)
                flag_modified(row, "payload")
            db.session.commit()
        except Exception:
            db.session.rollback()
            logger.exception("Failed to save store documents")
            raise


def build_store(config: dict[str, Any]) -> DocumentStore:
    backend = (config.get("STORE_BACKEND") or "json").strip().lower()
    if backend == "memory":
        return MemoryStore()
    if backend == "json":
        return JsonFileStore(config["DATA_FILE"])
    if backend in {"sqlalchemy", "sql", "database"}:
        return SqlDocumentStore()
    raise ValueError(f"Unknown STORE_BACKEND {backend!r}")


def current_store() -> DocumentStore:
    return current_app.extensions["moveit_store"]
