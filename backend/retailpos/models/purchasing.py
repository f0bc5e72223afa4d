from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


PO_DRAFT = "draft"
PO_SUBMITTED = "submitted"
PO_APPROVED = "approved"
PO_PARTIALLY_RECEIVED = "partially_received"
PO_RECEIVED = "received"
PO_CLOSED = "closed"
PO_CANCELLED = "cancelled"

PO_STATUSES = {
    PO_DRAFT,
    PO_SUBMITTED,
    PO_APPROVED,
    PO_PARTIALLY_RECEIVED,
    PO_RECEIVED,
    PO_CLOSED,
    PO_CANCELLED,
}

PO_ORDER_TYPES = {"standard", "urgent", "drop_ship"}


class PurchaseOrder(db.Model):
    """
    Purchase order header.

    LIFECYCLE:
    1. draft: lines freely added/edited/removed
    2. submitted: awaiting approval
    3. approved: ready to receive
    4. partially_received / received: stock credited through the ledger
    5. closed (terminal, from received only)
    X. cancelled (terminal, from any state before received)
    """
    __tablename__ = "purchase_orders"
    __table_args__ = (
        db.UniqueConstraint("po_number", name="uq_purchase_orders_number"),
        db.Index("ix_purchase_orders_vendor_status", "vendor_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    po_number = db.Column(db.String(32), nullable=False)

    vendor_id = db.Column(db.Integer, db.ForeignKey("vendors.id"), nullable=False, index=True)
    order_type = db.Column(db.String(16), nullable=False, default="standard")
    status = db.Column(db.String(24), nullable=False, default=PO_DRAFT, index=True)

    expected_delivery_date = db.Column(db.Date, nullable=True)

    subtotal_cents = db.Column(db.Integer, nullable=False, default=0)
    tax_cents = db.Column(db.Integer, nullable=False, default=0)
    shipping_cents = db.Column(db.Integer, nullable=False, default=0)
    other_charges_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False, default=0)

    notes = db.Column(db.Text, nullable=True)

    # Lifecycle actor attribution
    created_by = db.Column(db.String(64), nullable=True)
    submitted_by = db.Column(db.String(64), nullable=True)
    approved_by = db.Column(db.String(64), nullable=True)
    closed_by = db.Column(db.String(64), nullable=True)
    cancelled_by = db.Column(db.String(64), nullable=True)

    # Lifecycle timestamps
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    submitted_at = db.Column(db.DateTime(timezone=True), nullable=True)
    approved_at = db.Column(db.DateTime(timezone=True), nullable=True)
    received_at = db.Column(db.DateTime(timezone=True), nullable=True)
    closed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    cancel_reason = db.Column(db.Text, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    vendor = db.relationship("Vendor", backref=db.backref("purchase_orders", lazy=True))
    lines = db.relationship(
        "POLineItem",
        backref="purchase_order",
        lazy=True,
        order_by="POLineItem.id",
        cascade="all, delete-orphan",
    )
    receipts = db.relationship(
        "PurchaseOrderReceipt",
        backref="purchase_order",
        lazy=True,
        order_by="PurchaseOrderReceipt.id",
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<PurchaseOrder {self.po_number} status={self.status}>"

    def to_dict(self, include_lines: bool = True) -> dict:
        data = {
            "id": self.id,
            "po_number": self.po_number,
            "vendor_id": self.vendor_id,
            "vendor_name": self.vendor.name if self.vendor else None,
            "order_type": self.order_type,
            "status": self.status,
            "expected_delivery_date": (
                self.expected_delivery_date.isoformat() if self.expected_delivery_date else None
            ),
            "subtotal_cents": self.subtotal_cents,
            "tax_cents": self.tax_cents,
            "shipping_cents": self.shipping_cents,
            "other_charges_cents": self.other_charges_cents,
            "discount_cents": self.discount_cents,
            "total_cents": self.total_cents,
            "notes": self.notes,
            "created_by": self.created_by,
            "submitted_by": self.submitted_by,
            "approved_by": self.approved_by,
            "closed_by": self.closed_by,
            "cancelled_by": self.cancelled_by,
            "created_at": to_utc_z(self.created_at),
            "submitted_at": to_utc_z(self.submitted_at),
            "approved_at": to_utc_z(self.approved_at),
            "received_at": to_utc_z(self.received_at),
            "closed_at": to_utc_z(self.closed_at),
            "cancelled_at": to_utc_z(self.cancelled_at),
            "cancel_reason": self.cancel_reason,
        }
        if include_lines:
            data["lines"] = [line.to_dict() for line in self.lines]
            data["receipts"] = [receipt.to_dict() for receipt in self.receipts]
        return data


class POLineItem(db.Model):
    """
    Purchase order line.

    INVARIANT: 0 <= quantity_received <= quantity_ordered. quantity_received is
    cumulative across every receiving call.
    """
    __tablename__ = "po_line_items"
    __table_args__ = (
        db.UniqueConstraint("purchase_order_id", "product_id", name="uq_po_lines_po_product"),
        db.CheckConstraint("quantity_received >= 0", name="ck_po_lines_received_non_negative"),
        db.CheckConstraint("quantity_received <= quantity_ordered", name="ck_po_lines_received_bounded"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    purchase_order_id = db.Column(db.Integer, db.ForeignKey("purchase_orders.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    sku = db.Column(db.String(64), nullable=False)
    product_name = db.Column(db.String(255), nullable=False)

    quantity_ordered = db.Column(db.Integer, nullable=False)
    quantity_received = db.Column(db.Integer, nullable=False, default=0)

    unit_cost_cents = db.Column(db.Integer, nullable=False)
    tax_cents = db.Column(db.Integer, nullable=False, default=0)
    line_total_cents = db.Column(db.Integer, nullable=False)

    notes = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    product = db.relationship("Product")

    @property
    def quantity_pending(self) -> int:
        return self.quantity_ordered - self.quantity_received

    @property
    def is_fully_received(self) -> bool:
        return self.quantity_received == self.quantity_ordered

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "purchase_order_id": self.purchase_order_id,
            "product_id": self.product_id,
            "sku": self.sku,
            "product_name": self.product_name,
            "quantity_ordered": self.quantity_ordered,
            "quantity_received": self.quantity_received,
            "quantity_pending": self.quantity_pending,
            "unit_cost_cents": self.unit_cost_cents,
            "tax_cents": self.tax_cents,
            "line_total_cents": self.line_total_cents,
            "notes": self.notes,
        }


class PurchaseOrderReceipt(db.Model):
    """One shipment received against a purchase order (one per receive call)."""
    __tablename__ = "purchase_order_receipts"
    __table_args__ = (
        db.UniqueConstraint("receipt_number", name="uq_po_receipts_number"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    receipt_number = db.Column(db.String(32), nullable=False)
    purchase_order_id = db.Column(db.Integer, db.ForeignKey("purchase_orders.id"), nullable=False, index=True)

    received_by = db.Column(db.String(64), nullable=True)
    total_units = db.Column(db.Integer, nullable=False)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "receipt_number": self.receipt_number,
            "purchase_order_id": self.purchase_order_id,
            "received_by": self.received_by,
            "total_units": self.total_units,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }
