# Overview: Inventory ledger; the single writer of Product.quantity_in_stock plus its audit trail.

"""
Inventory ledger invariants (authoritative)

- Product.quantity_in_stock is written ONLY by adjust() below. Sales, voids,
  PO receiving, manual adjustments and initial stock all go through it.
- adjust() reads the product under a row lock, writes the new quantity and
  inserts exactly one InventoryAdjustment in the caller's database
  transaction. It never commits; the calling operation commits or rolls back
  everything it did as one unit.
- quantity_in_stock never goes below zero: a delta that would do so raises
  InsufficientStockError before anything is written.
- Multi-product operations lock rows in ascending product id order
  (lock_products) so overlapping operations cannot deadlock.
- Inactive products are tombstones: readable, never mutated.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import func

from ..extensions import db
from ..models import Product, InventoryAdjustment, Transaction, TransactionItem
from ..models.inventory import ADJUSTMENT_TYPES
from ..models.sales import TRANSACTION_COMPLETED
from ..validation import (
    InsufficientStockError,
    NotFoundError,
    ValidationError,
    optional_text,
    require_int,
)
from .concurrency import lock_for_update
from .document_service import next_adjustment_number
from ..time_utils import to_utc_z


@dataclass(frozen=True)
class LedgerResult:
    quantity_before: int
    quantity_after: int
    adjustment: InventoryAdjustment


def lock_products(product_ids) -> dict[int, Product]:
    """
    Lock the given product rows in ascending id order.

    Returns {product_id: Product} for the ids that exist; callers decide
    whether a missing id is an error.
    """
    ids = sorted({int(pid) for pid in product_ids})
    if not ids:
        return {}
    query = (
        db.session.query(Product)
        .filter(Product.id.in_(ids))
        .order_by(Product.id.asc())
    )
    return {p.id: p for p in lock_for_update(query).all()}


def adjust(
    product_id: int,
    delta: int,
    adjustment_type: str,
    reason: str | None,
    actor_id: str | None,
    *,
    notes: str | None = None,
    reference_type: str | None = None,
    reference_id: int | None = None,
) -> LedgerResult:
    """
    Apply a signed stock change to one product and record it.

    Must be called inside the caller's write transaction (see
    concurrency.begin_write / run_with_retry). Raises before mutating on any
    failure.
    """
    delta = require_int(delta, "delta")
    if delta == 0:
        raise ValidationError("delta must be non-zero")
    if adjustment_type not in ADJUSTMENT_TYPES:
        raise ValidationError(
            f"Unknown adjustment_type: {adjustment_type}",
            details={"allowed": sorted(ADJUSTMENT_TYPES)},
        )

    product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
    if product is None:
        raise NotFoundError("Product not found", details={"product_id": product_id})
    if not product.is_active:
        raise ValidationError("Product is inactive", details={"product_id": product_id})

    before = product.quantity_in_stock
    after = before + delta
    if after < 0:
        raise InsufficientStockError(
            f"Insufficient stock for {product.sku}",
            details={
                "product_id": product.id,
                "sku": product.sku,
                "available": before,
                "requested": -delta,
            },
        )

    product.quantity_in_stock = after

    adjustment = InventoryAdjustment(
        adjustment_number=next_adjustment_number(),
        product_id=product.id,
        adjustment_type=adjustment_type,
        quantity_change=delta,
        quantity_before=before,
        quantity_after=after,
        reason=optional_text(reason),
        notes=optional_text(notes),
        actor_id=actor_id,
        reference_type=reference_type,
        reference_id=reference_id,
    )
    db.session.add(adjustment)
    db.session.flush()

    return LedgerResult(quantity_before=before, quantity_after=after, adjustment=adjustment)


# =============================================================================
# Read helpers
# =============================================================================

def get_quantity_on_hand(product_id: int) -> int:
    qty = db.session.query(Product.quantity_in_stock).filter_by(id=product_id).scalar()
    if qty is None:
        raise NotFoundError("Product not found", details={"product_id": product_id})
    return qty


def list_adjustments(
    *,
    product_id: int | None = None,
    adjustment_type: str | None = None,
    limit: int = 100,
    offset: int = 0,
) -> tuple[list[InventoryAdjustment], int]:
    """Newest first. Returns (rows, total)."""
    query = db.session.query(InventoryAdjustment)
    if product_id is not None:
        query = query.filter(InventoryAdjustment.product_id == product_id)
    if adjustment_type:
        query = query.filter(InventoryAdjustment.adjustment_type == adjustment_type)

    total = query.count()

    limit = max(1, min(limit, 500))
    offset = max(0, offset)

    rows = (
        query.order_by(InventoryAdjustment.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return rows, total


def get_product_history(product_id: int) -> list[InventoryAdjustment]:
    """Every ledger row for a product in application order (oldest first)."""
    if db.session.get(Product, product_id) is None:
        raise NotFoundError("Product not found", details={"product_id": product_id})
    return (
        db.session.query(InventoryAdjustment)
        .filter_by(product_id=product_id)
        .order_by(InventoryAdjustment.id.asc())
        .all()
    )


def get_low_stock_products() -> list[dict]:
    """Active products at or below their reorder level, emptiest first."""
    products = (
        db.session.query(Product)
        .filter(
            Product.is_active.is_(True),
            Product.quantity_in_stock <= Product.reorder_level,
        )
        .order_by(Product.quantity_in_stock.asc(), Product.name.asc())
        .all()
    )
    return [
        {
            "id": p.id,
            "sku": p.sku,
            "name": p.name,
            "quantity_in_stock": p.quantity_in_stock,
            "reorder_level": p.reorder_level,
            "reorder_quantity": p.reorder_quantity,
            "stock_value_cents": p.price_cents * p.quantity_in_stock,
        }
        for p in products
    ]


def get_out_of_stock_products() -> list[dict]:
    """Active products with zero on hand, with the time of their last completed sale."""
    last_sale = (
        db.session.query(
            TransactionItem.product_id.label("product_id"),
            func.max(Transaction.completed_at).label("last_sale_at"),
        )
        .join(Transaction, Transaction.id == TransactionItem.transaction_id)
        .filter(Transaction.status == TRANSACTION_COMPLETED)
        .group_by(TransactionItem.product_id)
        .subquery()
    )

    rows = (
        db.session.query(Product, last_sale.c.last_sale_at)
        .outerjoin(last_sale, last_sale.c.product_id == Product.id)
        .filter(Product.is_active.is_(True), Product.quantity_in_stock == 0)
        .order_by(Product.name.asc())
        .all()
    )
    return [
        {
            "id": p.id,
            "sku": p.sku,
            "name": p.name,
            "reorder_quantity": p.reorder_quantity,
            "last_sale_at": to_utc_z(last_sale_at),
        }
        for p, last_sale_at in rows
    ]
