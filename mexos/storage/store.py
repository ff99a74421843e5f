"""Document store with push-based change notification.

Wraps the Repository with in-process subscriptions: a subscriber receives
the full document list of a collection right away and again after every
successful write to that collection. Storage failures surface as
PersistenceError; nothing is notified when a write fails.
"""

from __future__ import annotations

import logging
import sqlite3
from collections import defaultdict
from collections.abc import Callable, Iterable

from mexos.errors import EntityNotFoundError, PersistenceError
from mexos.storage.repository import Repository

logger = logging.getLogger(__name__)

Listener = Callable[[list[dict]], None]


class DocumentStore:
    """Collection-oriented facade used by every screen and command."""

    def __init__(self, repo: Repository) -> None:
        self._repo = repo
        self._listeners: dict[str, list[Listener]] = defaultdict(list)

    @property
    def repo(self) -> Repository:
        return self._repo

    def subscribe(self, collection: str, listener: Listener) -> Callable[[], None]:
        """Register a listener and push the current snapshot to it.

        Returns a function that removes the listener.
        """
        self._listeners[collection].append(listener)
        listener(self.get_all(collection))

        def unsubscribe() -> None:
            if listener in self._listeners[collection]:
                self._listeners[collection].remove(listener)

        return unsubscribe

    def get_all(self, collection: str) -> list[dict]:
        try:
            return self._repo.get_collection(collection)
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to read {collection}: {e}") from e

    def get(self, collection: str, doc_id: str) -> dict | None:
        try:
            return self._repo.get_document(collection, doc_id)
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to read {collection}/{doc_id}: {e}") from e

    def require(self, collection: str, doc_id: str) -> dict:
        doc = self.get(collection, doc_id)
        if doc is None:
            raise EntityNotFoundError(collection, doc_id)
        return doc

    def set(self, collection: str, doc_id: str, data: dict) -> dict:
        try:
            doc = self._repo.save_document(collection, doc_id, data)
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to write {collection}/{doc_id}: {e}") from e
        self._notify(collection)
        return doc

    def set_many(self, collection: str, docs: Iterable[dict]) -> None:
        docs = list(docs)
        try:
            self._repo.save_many(collection, docs)
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to write {collection}: {e}") from e
        self._notify(collection)

    def update_fields(self, collection: str, doc_id: str, patch: dict) -> dict:
        """Patch one document. Raises EntityNotFoundError if it is missing."""
        try:
            doc = self._repo.update_fields(collection, doc_id, patch)
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to update {collection}/{doc_id}: {e}") from e
        if doc is None:
            raise EntityNotFoundError(collection, doc_id)
        logger.debug(f"Updated {collection}/{doc_id}: {sorted(patch)}")
        self._notify(collection)
        return doc

    def update_many(self, patches: list[tuple[str, str, dict]]) -> list[dict]:
        """Patch several documents atomically; either all writes land or none do.

        Listeners of every touched collection are notified once, after commit.
        """
        for collection, doc_id, _ in patches:
            self.require(collection, doc_id)
        try:
            docs = self._repo.update_many(patches)
        except sqlite3.Error as e:
            targets = ", ".join(f"{c}/{d}" for c, d, _ in patches)
            raise PersistenceError(f"Failed to update {targets}: {e}") from e
        if docs is None:
            # a target vanished between the check and the write
            raise PersistenceError(f"Documents changed during update of {len(patches)} document(s)")
        for collection in dict.fromkeys(c for c, _, _ in patches):
            self._notify(collection)
        return docs

    def delete(self, collection: str, doc_id: str) -> bool:
        try:
            deleted = self._repo.delete_document(collection, doc_id)
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to delete {collection}/{doc_id}: {e}") from e
        if deleted:
            self._notify(collection)
        return deleted

    def log_practice(self, date: str, skill_id: str, label: str) -> dict:
        """Record practice time for one skill on one day, creating the entry if needed."""
        entry = self.get("habits", date)
        if entry is None:
            return self.set("habits", date, {"date": date, "skills": {skill_id: label}, "habits": {}})
        skills = {**(entry.get("skills") or {}), skill_id: label}
        return self.update_fields("habits", date, {"skills": skills})

    def _notify(self, collection: str) -> None:
        listeners = list(self._listeners.get(collection, ()))
        if not listeners:
            return
        snapshot = self.get_all(collection)
        for listener in listeners:
            listener(snapshot)


class ReadyBarrier:
    """Join over a fixed set of collections.

    Each collection is marked once its first snapshot has arrived; the
    barrier is ready when all of them have been marked. ``on_ready``
    callbacks fire exactly once.
    """

    def __init__(self, required: Iterable[str]) -> None:
        self._required = frozenset(required)
        self._seen: set[str] = set()
        self._callbacks: list[Callable[[], None]] = []
        self._fired = False

    @property
    def is_ready(self) -> bool:
        return self._seen >= self._required

    @property
    def missing(self) -> set[str]:
        return set(self._required - self._seen)

    def mark(self, collection: str) -> None:
        if collection not in self._required:
            return
        self._seen.add(collection)
        self._maybe_fire()

    def on_ready(self, callback: Callable[[], None]) -> None:
        self._callbacks.append(callback)
        if self._fired:
            callback()

    def _maybe_fire(self) -> None:
        if self._fired or not self.is_ready:
            return
        self._fired = True
        for callback in self._callbacks:
            callback()
