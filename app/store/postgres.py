# app/store/postgres.py
from __future__ import annotations

from typing import Any, Optional, Sequence

from psycopg2.extras import Json, RealDictCursor

from db import get_conn
from app.store.base import DocumentMissing, Write, check_expect, utcnow_iso


def _row_to_doc(row: Optional[dict[str, Any]]) -> Optional[dict[str, Any]]:
    if not row:
        return None
    doc = dict(row["data"] or {})
    doc["created_at"] = row["created_at"].isoformat() if row.get("created_at") else doc.get("created_at")
    doc["updated_at"] = row["updated_at"].isoformat() if row.get("updated_at") else doc.get("updated_at")
    return doc


class PostgresDocumentStore:
    """
    Document store on app.documents (see alembic 0001_documents).

    Every commit runs in one DB transaction from db.get_conn(); rows touched
    by a batch are locked with SELECT ... FOR UPDATE before preconditions are
    checked, so a concurrent batch on the same order waits instead of
    interleaving.
    """

    def get(self, collection: str, doc_id: str) -> Optional[dict[str, Any]]:
        with get_conn() as conn:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(
                    """
                    SELECT data, created_at, updated_at
                    FROM app.documents
                    WHERE collection = %s AND doc_id = %s
                    """,
                    (collection, doc_id),
                )
                return _row_to_doc(cur.fetchone())

    def create(self, collection: str, doc_id: str, data: dict[str, Any]) -> bool:
        with get_conn() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO app.documents (collection, doc_id, data, created_at, updated_at)
                    VALUES (%s, %s, %s::jsonb, now(), now())
                    ON CONFLICT (collection, doc_id) DO NOTHING
                    """,
                    (collection, doc_id, Json(_strip_timestamps(data))),
                )
                return cur.rowcount == 1

    def commit(self, writes: Sequence[Write]) -> None:
        if not writes:
            return
        with get_conn() as conn:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                # lock in a stable order to avoid deadlocks between batches
                keys = sorted({(w.collection, w.doc_id) for w in writes})
                locked: dict[tuple[str, str], Optional[dict[str, Any]]] = {}
                for collection, doc_id in keys:
                    cur.execute(
                        """
                        SELECT data, created_at, updated_at
                        FROM app.documents
                        WHERE collection = %s AND doc_id = %s
                        FOR UPDATE
                        """,
                        (collection, doc_id),
                    )
                    locked[(collection, doc_id)] = _row_to_doc(cur.fetchone())

                for w in writes:
                    key = (w.collection, w.doc_id)
                    current = locked.get(key)
                    check_expect(w, current)

                    if w.op == "delete":
                        cur.execute(
                            "DELETE FROM app.documents WHERE collection = %s AND doc_id = %s",
                            (w.collection, w.doc_id),
                        )
                        locked[key] = None
                        continue

                    if current is None:
                        raise DocumentMissing(w.collection, w.doc_id)

                    cur.execute(
                        """
                        UPDATE app.documents
                        SET data = data || %s::jsonb, updated_at = now()
                        WHERE collection = %s AND doc_id = %s
                        """,
                        (Json(_strip_timestamps(w.fields)), w.collection, w.doc_id),
                    )
                    locked[key] = {**current, **w.fields, "updated_at": utcnow_iso()}


def _strip_timestamps(data: dict[str, Any]) -> dict[str, Any]:
    # timestamps live in their own columns
    return {k: v for k, v in data.items() if k not in ("created_at", "updated_at")}
