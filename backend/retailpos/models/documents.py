from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class DocumentSequence(db.Model):
    """
    Atomic document number sequences, one row per key.

    Keys are document kinds ("TXN", "ADJ", "RCV") or a per-day key for
    purchase orders ("PO-20260101").
    """
    __tablename__ = "document_sequences"
    __table_args__ = (
        db.UniqueConstraint("key", name="uq_document_sequences_key"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    key = db.Column(db.String(32), nullable=False)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "key": self.key,
            "next_number": self.next_number,
            "updated_at": to_utc_z(self.updated_at),
        }
