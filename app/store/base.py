# app/store/base.py
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal, Optional, Protocol, Sequence

ORDERS = "orders"
BILLING_STATEMENTS = "billing_statements"
TRANSACTIONS = "transactions"
BOOKINGS = "bookings"

COLLECTIONS = (ORDERS, BILLING_STATEMENTS, TRANSACTIONS, BOOKINGS)

WriteOp = Literal["update", "delete"]


class StoreError(Exception):
    pass


class DocumentMissing(StoreError):
    """
    An update in a batch targeted a document that does not exist.
    The whole batch is rejected.
    """

    def __init__(self, collection: str, doc_id: str):
        self.collection = collection
        self.doc_id = doc_id
        super().__init__(f"{collection}/{doc_id} does not exist")


class PreconditionFailed(StoreError):
    """
    A write's `expect` fields did not match the stored document.
    The whole batch is rejected.
    """

    def __init__(self, collection: str, doc_id: str, field_name: str, expected: Any, actual: Any):
        self.collection = collection
        self.doc_id = doc_id
        self.field_name = field_name
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"{collection}/{doc_id}: expected {field_name}={expected!r}, found {actual!r}"
        )


@dataclass(frozen=True)
class Write:
    collection: str
    doc_id: str
    fields: dict[str, Any] = field(default_factory=dict)
    op: WriteOp = "update"
    # field -> value the stored document must hold for the batch to apply
    expect: Optional[dict[str, Any]] = None

    @classmethod
    def update(cls, collection: str, doc_id: str, fields: dict[str, Any], *, expect: Optional[dict[str, Any]] = None) -> "Write":
        return cls(collection=collection, doc_id=doc_id, fields=dict(fields), op="update", expect=expect)

    @classmethod
    def delete(cls, collection: str, doc_id: str) -> "Write":
        return cls(collection=collection, doc_id=doc_id, op="delete")


class DocumentStore(Protocol):
    def get(self, collection: str, doc_id: str) -> Optional[dict[str, Any]]: ...

    def create(self, collection: str, doc_id: str, data: dict[str, Any]) -> bool:
        """Create-if-absent. Returns False when the document already exists."""
        ...

    def commit(self, writes: Sequence[Write]) -> None:
        """Apply every write or none of them."""
        ...


def utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def check_expect(write: Write, current: Optional[dict[str, Any]]) -> None:
    if not write.expect:
        return
    doc = current or {}
    for key, expected in write.expect.items():
        actual = doc.get(key)
        if actual != expected:
            raise PreconditionFailed(write.collection, write.doc_id, key, expected, actual)
