"""CRUD operations for JSON documents grouped in collections."""

from __future__ import annotations

import json
import logging
import sqlite3
from datetime import datetime

logger = logging.getLogger(__name__)

COLLECTIONS = ("campaigns", "exams", "habits", "skills", "bureaucracy")


class Repository:
    """Data access layer for the mexos SQLite database.

    Documents are stored as JSON with their id duplicated in the ``id``
    key, so every dict coming out of the repository carries its id.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def save_document(self, collection: str, doc_id: str, data: dict) -> dict:
        """Insert or replace a whole document."""
        doc = {**data, "id": doc_id}
        self._conn.execute(
            """INSERT OR REPLACE INTO documents (collection, id, data, updated_at)
            VALUES (?, ?, ?, ?)""",
            (collection, doc_id, json.dumps(doc), datetime.now().isoformat()),
        )
        self._conn.commit()
        return doc

    def save_many(self, collection: str, docs: list[dict]) -> None:
        """Save several documents in one transaction. Each needs an ``id``."""
        now = datetime.now().isoformat()
        with self._conn:
            self._conn.executemany(
                """INSERT OR REPLACE INTO documents (collection, id, data, updated_at)
                VALUES (?, ?, ?, ?)""",
                [(collection, d["id"], json.dumps(d), now) for d in docs],
            )

    def get_document(self, collection: str, doc_id: str) -> dict | None:
        row = self._conn.execute(
            "SELECT data FROM documents WHERE collection = ? AND id = ?",
            (collection, doc_id),
        ).fetchone()
        if row is None:
            return None
        return self._load(row)

    def get_collection(self, collection: str) -> list[dict]:
        """All documents of a collection in insertion order."""
        rows = self._conn.execute(
            "SELECT data FROM documents WHERE collection = ? ORDER BY rowid",
            (collection,),
        ).fetchall()
        docs = [self._load(row) for row in rows]
        return [d for d in docs if d is not None]

    def update_fields(self, collection: str, doc_id: str, patch: dict) -> dict | None:
        """Shallow-merge ``patch`` into a document. Returns None if it does not exist."""
        current = self.get_document(collection, doc_id)
        if current is None:
            return None
        merged = {**current, **patch, "id": doc_id}
        with self._conn:
            self._write(collection, doc_id, merged)
        return merged

    def update_many(self, patches: list[tuple[str, str, dict]]) -> list[dict] | None:
        """Apply several ``(collection, id, patch)`` merges in one transaction.

        Returns None, writing nothing, if any target document is missing.
        A failure part-way rolls every write back.
        """
        merged = []
        for collection, doc_id, patch in patches:
            current = self.get_document(collection, doc_id)
            if current is None:
                return None
            merged.append((collection, doc_id, {**current, **patch, "id": doc_id}))
        with self._conn:
            for collection, doc_id, doc in merged:
                self._write(collection, doc_id, doc)
        return [doc for _, _, doc in merged]

    def _write(self, collection: str, doc_id: str, doc: dict) -> None:
        self._conn.execute(
            "UPDATE documents SET data = ?, updated_at = ? WHERE collection = ? AND id = ?",
            (json.dumps(doc), datetime.now().isoformat(), collection, doc_id),
        )

    def delete_document(self, collection: str, doc_id: str) -> bool:
        cur = self._conn.execute(
            "DELETE FROM documents WHERE collection = ? AND id = ?",
            (collection, doc_id),
        )
        self._conn.commit()
        return cur.rowcount > 0

    def is_empty(self) -> bool:
        return self._conn.execute("SELECT COUNT(*) FROM documents").fetchone()[0] == 0

    def get_stats(self) -> dict:
        """Document counts per known collection."""
        rows = self._conn.execute(
            "SELECT collection, COUNT(*) AS n FROM documents GROUP BY collection"
        ).fetchall()
        counts = {row["collection"]: row["n"] for row in rows}
        return {name: counts.get(name, 0) for name in COLLECTIONS}

    def _load(self, row: sqlite3.Row) -> dict | None:
        try:
            return json.loads(row["data"])
        except json.JSONDecodeError:
            logger.warning(f"Skipping corrupt document: {row['data'][:200]}")
            return None
