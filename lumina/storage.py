"""Persistent catalog, link table, and vector index for the knowledge base."""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
from pathlib import Path
from typing import Any, List, Mapping, Optional, Sequence

from .errors import ReferentialIntegrityViolation
from .schemas import CATALOG_KINDS, CatalogEntry, CatalogQuery, VectorHit

logger = logging.getLogger(__name__)


def _connect(db_path: str) -> sqlite3.Connection:
    if db_path != ":memory:":
        Path(db_path).expanduser().parent.mkdir(parents=True, exist_ok=True)
    connection = sqlite3.connect(db_path, check_same_thread=False)
    connection.row_factory = sqlite3.Row
    connection.execute("PRAGMA foreign_keys=ON")
    return connection


class VectorIndex:
    """SQLite-backed id -> (vector, metadata) store with cosine similarity search."""

    def __init__(self, db_path: str = ":memory:") -> None:
        self.connection = _connect(db_path)
        self._lock = threading.Lock()
        with self._lock:
            self.connection.execute(
                """
                CREATE TABLE IF NOT EXISTS items (
                    id TEXT PRIMARY KEY,
                    vector TEXT NOT NULL,
                    metadata TEXT NOT NULL
                )
                """
            )
            self.connection.commit()

    @staticmethod
    def _serialize_vector(vector: Sequence[float]) -> str:
        return json.dumps([float(x) for x in vector])

    @staticmethod
    def _deserialize_vector(blob: str) -> List[float]:
        return [float(x) for x in json.loads(blob)]

    @staticmethod
    def _cosine_similarity(vec1: Sequence[float], vec2: Sequence[float]) -> float:
        if not vec1 or not vec2:
            return 0.0
        dot = sum(a * b for a, b in zip(vec1, vec2))
        norm1 = sum(a * a for a in vec1) ** 0.5
        norm2 = sum(b * b for b in vec2) ** 0.5
        if norm1 == 0 or norm2 == 0:
            return 0.0
        return dot / (norm1 * norm2)

    def upsert(self, item_id: str, vector: Sequence[float], metadata: Mapping[str, Any]) -> None:
        with self._lock:
            self.connection.execute(
                """
                INSERT INTO items(id, vector, metadata) VALUES (?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET vector = excluded.vector, metadata = excluded.metadata
                """,
                (item_id, self._serialize_vector(vector), json.dumps(dict(metadata), ensure_ascii=False)),
            )
            self.connection.commit()

    def get(self, item_id: str) -> Optional[VectorHit]:
        with self._lock:
            row = self.connection.execute(
                "SELECT id, metadata FROM items WHERE id = ?", (item_id,)
            ).fetchone()
        if not row:
            return None
        return VectorHit(id=row["id"], score=1.0, metadata=json.loads(row["metadata"]))

    def query(self, vector: Sequence[float], top_k: int = 5) -> List[VectorHit]:
        with self._lock:
            rows = self.connection.execute("SELECT id, vector, metadata FROM items").fetchall()
        scored: List[VectorHit] = []
        for row in rows:
            score = self._cosine_similarity(vector, self._deserialize_vector(row["vector"]))
            scored.append(VectorHit(id=row["id"], score=score, metadata=json.loads(row["metadata"])))
        scored.sort(key=lambda item: item.score, reverse=True)
        return scored[:top_k]

    def close(self) -> None:
        self.connection.close()


class KnowledgeStore:
    """Sole writer of the catalog, the Moc link table, and the vector index."""

    def __init__(self, db_path: str = ":memory:", vector_index: Optional[VectorIndex] = None) -> None:
        self.connection = _connect(db_path)
        self.vector_index = vector_index or VectorIndex()
        self._lock = threading.Lock()
        self._create_schema()

    def _create_schema(self) -> None:
        with self._lock:
            cur = self.connection.cursor()
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS documents (
                    id TEXT PRIMARY KEY,
                    type TEXT NOT NULL CHECK (type IN ('memory', 'moc')),
                    name TEXT NOT NULL,
                    file_location TEXT NOT NULL,
                    creation_timestamp INTEGER NOT NULL
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS moc_files (
                    moc_id TEXT NOT NULL REFERENCES documents(id),
                    document_id TEXT NOT NULL REFERENCES documents(id),
                    PRIMARY KEY (moc_id, document_id)
                )
                """
            )
            cur.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_moc_files_document_id
                ON moc_files(document_id)
                """
            )
            self.connection.commit()

    @staticmethod
    def _row_to_entry(row: sqlite3.Row) -> CatalogEntry:
        return CatalogEntry(
            id=row["id"],
            kind=row["type"],
            name=row["name"],
            content_location=row["file_location"],
            created_at=row["creation_timestamp"],
        )

    # ------------------------------------------------------------------
    # Catalog
    # ------------------------------------------------------------------
    def upsert_catalog_entry(self, entry: CatalogEntry) -> None:
        """Insert or update a catalog row; the first creation timestamp is kept."""

        if entry.kind not in CATALOG_KINDS:
            raise ValueError(f"Unsupported catalog kind '{entry.kind}'")
        with self._lock:
            self.connection.execute(
                """
                INSERT INTO documents(id, type, name, file_location, creation_timestamp)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    type = excluded.type,
                    name = excluded.name,
                    file_location = excluded.file_location
                """,
                (entry.id, entry.kind, entry.name, entry.content_location, entry.created_at),
            )
            self.connection.commit()

    def find_by_id(self, entry_id: str) -> Optional[CatalogEntry]:
        with self._lock:
            row = self.connection.execute(
                "SELECT * FROM documents WHERE id = ?", (entry_id,)
            ).fetchone()
        return self._row_to_entry(row) if row else None

    def find_by_name_and_kind(self, name: str, kind: str) -> Optional[CatalogEntry]:
        with self._lock:
            row = self.connection.execute(
                """
                SELECT * FROM documents WHERE name = ? AND type = ?
                ORDER BY creation_timestamp ASC, rowid ASC LIMIT 1
                """,
                (name, kind),
            ).fetchone()
        return self._row_to_entry(row) if row else None

    def search(self, criteria: CatalogQuery) -> List[CatalogEntry]:
        clauses: List[str] = []
        params: List[Any] = []
        if criteria.name_contains is not None:
            clauses.append("name LIKE ?")
            params.append(f"%{criteria.name_contains}%")
        if criteria.kind is not None:
            clauses.append("type = ?")
            params.append(criteria.kind)

        sql = "SELECT * FROM documents"
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        sql += " ORDER BY creation_timestamp ASC, rowid ASC"
        if criteria.limit is not None:
            sql += " LIMIT ? OFFSET ?"
            params.extend([criteria.limit, criteria.offset])
        elif criteria.offset:
            sql += " LIMIT -1 OFFSET ?"
            params.append(criteria.offset)

        with self._lock:
            rows = self.connection.execute(sql, params).fetchall()
        return [self._row_to_entry(row) for row in rows]

    # ------------------------------------------------------------------
    # Links
    # ------------------------------------------------------------------
    def has_edge(self, parent_id: str, child_id: str) -> bool:
        with self._lock:
            row = self.connection.execute(
                "SELECT 1 FROM moc_files WHERE moc_id = ? AND document_id = ?",
                (parent_id, child_id),
            ).fetchone()
        return row is not None

    def add_edge(self, parent_id: str, child_id: str) -> None:
        """Link ``child_id`` under ``parent_id``; re-adding an existing edge is a no-op."""

        if self.has_edge(parent_id, child_id):
            return
        with self._lock:
            try:
                self.connection.execute(
                    "INSERT INTO moc_files(moc_id, document_id) VALUES (?, ?)",
                    (parent_id, child_id),
                )
                self.connection.commit()
            except sqlite3.IntegrityError as exc:
                self.connection.rollback()
                if "FOREIGN KEY" in str(exc).upper():
                    raise ReferentialIntegrityViolation(
                        f"Cannot link {child_id} under {parent_id}: both must be saved before linking"
                    ) from exc
                raise

    def child_ids_of(self, parent_id: str) -> List[str]:
        with self._lock:
            rows = self.connection.execute(
                "SELECT document_id FROM moc_files WHERE moc_id = ? ORDER BY rowid ASC",
                (parent_id,),
            ).fetchall()
        return [row["document_id"] for row in rows]

    def parent_ids_of(self, child_id: str) -> List[str]:
        with self._lock:
            rows = self.connection.execute(
                "SELECT moc_id FROM moc_files WHERE document_id = ? ORDER BY rowid ASC",
                (child_id,),
            ).fetchall()
        return [row["moc_id"] for row in rows]

    # ------------------------------------------------------------------
    # Vectors
    # ------------------------------------------------------------------
    def upsert_vector(self, entry_id: str, vector: Sequence[float], metadata: Mapping[str, Any]) -> None:
        self.vector_index.upsert(entry_id, vector, metadata)

    def query_vectors(self, vector: Sequence[float], top_k: int = 5) -> List[VectorHit]:
        return self.vector_index.query(vector, top_k=top_k)

    def close(self) -> None:
        self.connection.close()
        self.vector_index.close()


__all__ = ["KnowledgeStore", "VectorIndex"]
