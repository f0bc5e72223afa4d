# Overview: Manual stock adjustments (damage, theft, found, correction, initial) through the ledger.

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import InventoryAdjustment
from ..models.inventory import MANUAL_ADJUSTMENT_TYPES
from ..validation import NotFoundError, ValidationError, require_int, require_text
from .concurrency import begin_write, run_with_retry
from .inventory_service import adjust


def create_adjustment(
    product_id: int,
    adjustment_type: str,
    quantity_change: int,
    reason: str,
    actor_id: str | None,
    notes: str | None = None,
) -> InventoryAdjustment:
    """
    Record a manual stock correction.

    System types (sale, sale_void, po_receive) are written only by their own
    workflows and are rejected here. InsufficientStockError from the ledger
    propagates unchanged.
    """
    if adjustment_type not in MANUAL_ADJUSTMENT_TYPES:
        raise ValidationError(
            f"adjustment_type must be one of: {', '.join(sorted(MANUAL_ADJUSTMENT_TYPES))}",
            details={"allowed": sorted(MANUAL_ADJUSTMENT_TYPES)},
        )
    product_id = require_int(product_id, "product_id")
    quantity_change = require_int(quantity_change, "quantity_change")
    if quantity_change == 0:
        raise ValidationError("quantity_change must be non-zero")
    reason = require_text(reason, "reason")

    def _op() -> InventoryAdjustment:
        begin_write()
        result = adjust(product_id, quantity_change, adjustment_type, reason, actor_id, notes=notes)
        db.session.commit()
        current_app.logger.info(
            "Adjustment %s: product %s %+d (%s) by %s",
            result.adjustment.adjustment_number, product_id, quantity_change, adjustment_type, actor_id,
        )
        return result.adjustment

    return run_with_retry(_op)


def get_adjustment(adjustment_id: int) -> InventoryAdjustment:
    adjustment = db.session.get(InventoryAdjustment, adjustment_id)
    if adjustment is None:
        raise NotFoundError("Adjustment not found", details={"adjustment_id": adjustment_id})
    return adjustment
