# Overview: Reorder advisor; read-only low-stock suggestions grouped by preferred vendor.

from __future__ import annotations

from sqlalchemy import func, select

from ..extensions import db
from ..models import Product, Vendor, POLineItem
from ..validation import NotFoundError, ValidationError, require_positive_int
from .purchase_order_service import create_po


def _latest_unit_cost_subquery():
    """Unit cost from the most recent PO line for the product, else the product price."""
    latest = (
        select(POLineItem.unit_cost_cents)
        .where(POLineItem.product_id == Product.id)
        .order_by(POLineItem.id.desc())
        .limit(1)
        .correlate(Product)
        .scalar_subquery()
    )
    return func.coalesce(latest, Product.price_cents)


def get_reorder_suggestions(vendor_id: int | None = None) -> list[dict]:
    """
    Active products at or below reorder_level whose preferred vendor is
    active, grouped by vendor (vendor name, then product name).

    total_items is the sum of suggested units; estimated_total_cents is
    the sum of reorder_quantity x unit cost.
    """
    unit_cost = _latest_unit_cost_subquery().label("unit_cost_cents")

    query = (
        db.session.query(Product, Vendor, unit_cost)
        .join(Vendor, Vendor.id == Product.vendor_id)
        .filter(
            Product.is_active.is_(True),
            Vendor.is_active.is_(True),
            Product.quantity_in_stock <= Product.reorder_level,
        )
    )
    if vendor_id is not None:
        query = query.filter(Vendor.id == vendor_id)

    rows = query.order_by(Vendor.name.asc(), Vendor.id.asc(), Product.name.asc()).all()

    groups: dict[int, dict] = {}
    for product, vendor, cost in rows:
        group = groups.get(vendor.id)
        if group is None:
            group = groups[vendor.id] = {
                "vendor_id": vendor.id,
                "vendor_name": vendor.name,
                "vendor_contact": vendor.contact_name,
                "products": [],
                "total_items": 0,
                "estimated_total_cents": 0,
            }

        group["products"].append({
            "product_id": product.id,
            "sku": product.sku,
            "product_name": product.name,
            "quantity_in_stock": product.quantity_in_stock,
            "reorder_level": product.reorder_level,
            "reorder_quantity": product.reorder_quantity,
            "unit_cost_cents": cost,
        })
        group["total_items"] += product.reorder_quantity
        group["estimated_total_cents"] += product.reorder_quantity * (cost or 0)

    return list(groups.values())


def create_po_from_suggestions(vendor_id, actor_id: str | None):
    """Seed a draft purchase order with the vendor's current suggestions."""
    vendor_id = require_positive_int(vendor_id, "vendor_id")
    if db.session.get(Vendor, vendor_id) is None:
        raise NotFoundError("Vendor not found", details={"vendor_id": vendor_id})

    groups = get_reorder_suggestions(vendor_id=vendor_id)
    items = [
        {
            "product_id": s["product_id"],
            "quantity_ordered": s["reorder_quantity"],
            "unit_cost_cents": s["unit_cost_cents"],
        }
        for group in groups
        for s in group["products"]
        if s["reorder_quantity"] > 0
    ]
    if not items:
        raise ValidationError("No reorder suggestions for this vendor", details={"vendor_id": vendor_id})

    return create_po(vendor_id, actor_id, items=items, notes="Created from reorder suggestions")
