from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


# Adjustment types recorded by the inventory ledger
ADJUSTMENT_DAMAGE = "damage"
ADJUSTMENT_THEFT = "theft"
ADJUSTMENT_FOUND = "found"
ADJUSTMENT_CORRECTION = "correction"
ADJUSTMENT_INITIAL = "initial"
ADJUSTMENT_SALE = "sale"
ADJUSTMENT_SALE_VOID = "sale_void"
ADJUSTMENT_PO_RECEIVE = "po_receive"

MANUAL_ADJUSTMENT_TYPES = {
    ADJUSTMENT_DAMAGE,
    ADJUSTMENT_THEFT,
    ADJUSTMENT_FOUND,
    ADJUSTMENT_CORRECTION,
    ADJUSTMENT_INITIAL,
}
SYSTEM_ADJUSTMENT_TYPES = {ADJUSTMENT_SALE, ADJUSTMENT_SALE_VOID, ADJUSTMENT_PO_RECEIVE}
ADJUSTMENT_TYPES = MANUAL_ADJUSTMENT_TYPES | SYSTEM_ADJUSTMENT_TYPES


class Vendor(db.Model):
    """
    Supplier of products; the counterparty on every purchase order.

    Vendors are never deleted. Deactivated vendors keep their history but
    cannot receive new purchase orders or reorder suggestions.
    """
    __tablename__ = "vendors"
    __table_args__ = (
        db.UniqueConstraint("code", name="uq_vendors_code"),
        db.Index("ix_vendors_active_name", "is_active", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(255), nullable=False)
    code = db.Column(db.String(64), nullable=True)  # Optional short code for quick lookup

    contact_name = db.Column(db.String(255), nullable=True)
    contact_email = db.Column(db.String(255), nullable=True)
    contact_phone = db.Column(db.String(64), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def __repr__(self) -> str:
        return f"<Vendor id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "contact_name": self.contact_name,
            "contact_email": self.contact_email,
            "contact_phone": self.contact_phone,
            "is_active": self.is_active,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Product(db.Model):
    """
    Product master data.

    QUANTITY DESIGN DECISION:
    quantity_in_stock is a stored column, but it is written ONLY by
    inventory_service.adjust(), which records an InventoryAdjustment in the
    same database transaction. Business code never assigns it directly.

    SOFT DELETE: is_active is a tombstone. Inactive products stay readable
    but every mutating operation rejects them.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("sku", name="uq_products_sku"),
        db.Index("ix_products_active_name", "is_active", "name"),
        db.Index("ix_products_reorder", "is_active", "quantity_in_stock", "reorder_level"),
        db.CheckConstraint("quantity_in_stock >= 0", name="ck_products_quantity_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    sku = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)

    # Authoritative storage in cents
    price_cents = db.Column(db.Integer, nullable=False, default=0)
    # NULL -> Config.DEFAULT_TAX_RATE_BPS
    tax_rate_bps = db.Column(db.Integer, nullable=True)

    quantity_in_stock = db.Column(db.Integer, nullable=False, default=0)
    reorder_level = db.Column(db.Integer, nullable=False, default=0)
    reorder_quantity = db.Column(db.Integer, nullable=False, default=0)

    # Preferred vendor used by reorder suggestions
    vendor_id = db.Column(db.Integer, db.ForeignKey("vendors.id"), nullable=True, index=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    vendor = db.relationship("Vendor", backref=db.backref("products", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} qty={self.quantity_in_stock}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sku": self.sku,
            "name": self.name,
            "description": self.description,
            "price_cents": self.price_cents,
            "tax_rate_bps": self.tax_rate_bps,
            "quantity_in_stock": self.quantity_in_stock,
            "reorder_level": self.reorder_level,
            "reorder_quantity": self.reorder_quantity,
            "vendor_id": self.vendor_id,
            "is_active": self.is_active,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class InventoryAdjustment(db.Model):
    """
    Append-only audit row written by the inventory ledger for every stock change.

    quantity_before / quantity_after are captured under the product row lock,
    so consecutive rows for one product always chain:
    row[n].quantity_after == row[n+1].quantity_before.
    """
    __tablename__ = "inventory_adjustments"
    __table_args__ = (
        db.UniqueConstraint("adjustment_number", name="uq_inventory_adjustments_number"),
        db.Index("ix_invadj_product_created", "product_id", "created_at"),
        db.Index("ix_invadj_reference", "reference_type", "reference_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    adjustment_number = db.Column(db.String(32), nullable=False)

    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    adjustment_type = db.Column(db.String(32), nullable=False, index=True)

    quantity_change = db.Column(db.Integer, nullable=False)
    quantity_before = db.Column(db.Integer, nullable=False)
    quantity_after = db.Column(db.Integer, nullable=False)

    reason = db.Column(db.String(255), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    actor_id = db.Column(db.String(64), nullable=True, index=True)

    # Originating document: "transaction" or "purchase_order"
    reference_type = db.Column(db.String(32), nullable=True)
    reference_id = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product", backref=db.backref("adjustments", lazy="dynamic"))

    def __repr__(self) -> str:
        return (
            f"<InventoryAdjustment {self.adjustment_number} product_id={self.product_id} "
            f"{self.adjustment_type} {self.quantity_change:+d}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "adjustment_number": self.adjustment_number,
            "product_id": self.product_id,
            "adjustment_type": self.adjustment_type,
            "quantity_change": self.quantity_change,
            "quantity_before": self.quantity_before,
            "quantity_after": self.quantity_after,
            "reason": self.reason,
            "notes": self.notes,
            "actor_id": self.actor_id,
            "reference_type": self.reference_type,
            "reference_id": self.reference_id,
            "created_at": to_utc_z(self.created_at),
        }
