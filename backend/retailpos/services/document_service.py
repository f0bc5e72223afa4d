# Overview: Service-layer operations for document numbers; atomic sequence allocation.

from __future__ import annotations

from datetime import date

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import DocumentSequence
from ..time_utils import utcnow


TRANSACTION_KEY = "TXN"
ADJUSTMENT_KEY = "ADJ"
RECEIPT_KEY = "RCV"


def _allocated_number(key: str) -> int:
    current = (
        db.session.query(DocumentSequence.next_number)
        .filter_by(key=key)
        .scalar()
    )
    return current - 1


def next_document_number(key: str, prefix: str, pad: int = 6) -> str:
    """
    Atomically allocate the next number for a sequence key.

    Runs inside the caller's transaction: the UPDATE takes the row lock and
    is rolled back together with the document if the caller fails, so
    numbers of committed documents have no gaps from failed operations.
    The first allocation for a key inserts the row under a savepoint; losing
    that insert race falls back to the UPDATE path.
    """
    if not key:
        raise ValueError("key is required")

    stmt = (
        update(DocumentSequence)
        .where(DocumentSequence.key == key)
        .values(next_number=DocumentSequence.next_number + 1)
        .execution_options(synchronize_session=False)
    )

    result = db.session.execute(stmt)
    if result.rowcount:
        next_num = _allocated_number(key)
    else:
        try:
            with db.session.begin_nested():
                db.session.add(DocumentSequence(key=key, next_number=2))
            next_num = 1
        except IntegrityError:
            result = db.session.execute(stmt)
            if not result.rowcount:
                raise
            next_num = _allocated_number(key)

    return f"{prefix}-{next_num:0{pad}d}"


def next_transaction_number() -> str:
    return next_document_number(TRANSACTION_KEY, "TXN", pad=6)


def next_adjustment_number() -> str:
    return next_document_number(ADJUSTMENT_KEY, "ADJ", pad=6)


def next_receipt_number() -> str:
    return next_document_number(RECEIPT_KEY, "RCV", pad=6)


def next_po_number(on_date: date | None = None) -> str:
    """PO-YYYYMMDD-####, numbered per calendar day (UTC)."""
    day = on_date or utcnow().date()
    key = f"PO-{day:%Y%m%d}"
    return next_document_number(key, key, pad=4)
