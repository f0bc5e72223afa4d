from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


TRANSACTION_COMPLETED = "completed"
TRANSACTION_VOIDED = "voided"

PAYMENT_METHODS = {"cash", "credit_card", "debit_card", "check", "gift_card", "store_credit"}


class Transaction(db.Model):
    """
    Completed sale.

    LIFECYCLE: completed -> voided, exactly once. A transaction is created
    together with its items and payments in one database transaction, so a
    row only ever exists in a fully-applied state.
    """
    __tablename__ = "transactions"
    __table_args__ = (
        db.UniqueConstraint("transaction_number", name="uq_transactions_number"),
        db.Index("ix_transactions_status_completed", "status", "completed_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    transaction_number = db.Column(db.String(32), nullable=False)

    status = db.Column(db.String(16), nullable=False, default=TRANSACTION_COMPLETED, index=True)

    cashier_id = db.Column(db.String(64), nullable=True, index=True)
    customer_id = db.Column(db.Integer, nullable=True, index=True)

    subtotal_cents = db.Column(db.Integer, nullable=False, default=0)
    tax_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False, default=0)
    amount_paid_cents = db.Column(db.Integer, nullable=False, default=0)
    change_due_cents = db.Column(db.Integer, nullable=False, default=0)

    notes = db.Column(db.Text, nullable=True)

    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    voided_at = db.Column(db.DateTime(timezone=True), nullable=True)
    voided_by = db.Column(db.String(64), nullable=True)
    void_reason = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    version_id = db.Column(db.Integer, nullable=False, default=1)

    items = db.relationship(
        "TransactionItem",
        backref="transaction",
        lazy=True,
        order_by="TransactionItem.line_number",
    )
    payments = db.relationship("Payment", backref="transaction", lazy=True, order_by="Payment.id")

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Transaction {self.transaction_number} status={self.status} total={self.total_cents}>"

    def to_dict(self, include_lines: bool = True) -> dict:
        data = {
            "id": self.id,
            "transaction_number": self.transaction_number,
            "status": self.status,
            "cashier_id": self.cashier_id,
            "customer_id": self.customer_id,
            "subtotal_cents": self.subtotal_cents,
            "tax_cents": self.tax_cents,
            "discount_cents": self.discount_cents,
            "total_cents": self.total_cents,
            "amount_paid_cents": self.amount_paid_cents,
            "change_due_cents": self.change_due_cents,
            "notes": self.notes,
            "completed_at": to_utc_z(self.completed_at),
            "voided_at": to_utc_z(self.voided_at),
            "voided_by": self.voided_by,
            "void_reason": self.void_reason,
            "created_at": to_utc_z(self.created_at),
        }
        if include_lines:
            data["items"] = [item.to_dict() for item in self.items]
            data["payments"] = [payment.to_dict() for payment in self.payments]
        return data


class TransactionItem(db.Model):
    """
    One sold line.

    SNAPSHOT: sku, name, unit price and tax rate are copied from the catalog
    at sale time. Later catalog edits never change historical totals, and a
    void restores exactly `quantity`.
    """
    __tablename__ = "transaction_items"
    __table_args__ = (
        db.UniqueConstraint("transaction_id", "line_number", name="uq_transaction_items_line"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    transaction_id = db.Column(db.Integer, db.ForeignKey("transactions.id"), nullable=False, index=True)
    line_number = db.Column(db.Integer, nullable=False)

    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    product_sku = db.Column(db.String(64), nullable=False)
    product_name = db.Column(db.String(255), nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    tax_rate_bps = db.Column(db.Integer, nullable=False, default=0)

    quantity = db.Column(db.Integer, nullable=False)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    tax_cents = db.Column(db.Integer, nullable=False, default=0)
    line_total_cents = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "transaction_id": self.transaction_id,
            "line_number": self.line_number,
            "product_id": self.product_id,
            "product_sku": self.product_sku,
            "product_name": self.product_name,
            "unit_price_cents": self.unit_price_cents,
            "tax_rate_bps": self.tax_rate_bps,
            "quantity": self.quantity,
            "discount_cents": self.discount_cents,
            "tax_cents": self.tax_cents,
            "line_total_cents": self.line_total_cents,
        }


class Payment(db.Model):
    """Tender recorded against a transaction. Immutable after creation."""
    __tablename__ = "payments"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    transaction_id = db.Column(db.Integer, db.ForeignKey("transactions.id"), nullable=False, index=True)

    method = db.Column(db.String(32), nullable=False)
    amount_cents = db.Column(db.Integer, nullable=False)

    # Method-specific details
    cash_tendered_cents = db.Column(db.Integer, nullable=True)
    change_cents = db.Column(db.Integer, nullable=True)
    card_type = db.Column(db.String(32), nullable=True)
    card_last_four = db.Column(db.String(4), nullable=True)
    check_number = db.Column(db.String(64), nullable=True)
    reference = db.Column(db.String(128), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "transaction_id": self.transaction_id,
            "method": self.method,
            "amount_cents": self.amount_cents,
            "cash_tendered_cents": self.cash_tendered_cents,
            "change_cents": self.change_cents,
            "card_type": self.card_type,
            "card_last_four": self.card_last_four,
            "check_number": self.check_number,
            "reference": self.reference,
            "created_at": to_utc_z(self.created_at),
        }
