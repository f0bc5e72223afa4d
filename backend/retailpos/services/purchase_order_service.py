# Overview: Service-layer operations for purchase orders; lifecycle and receiving.

"""
Purchase Order Service

LIFECYCLE:
    draft --submit--> submitted --approve--> approved
    approved --receive--> partially_received | received
    partially_received --receive--> partially_received | received
    received --close--> closed
    {draft, submitted, approved, partially_received} --cancel--> cancelled

- Header fields and lines are editable only in draft.
- Receiving credits stock through the inventory ledger and is cumulative per
  line; one call may never push any line past quantity_ordered, and a call
  with one bad receipt applies none of them.
- Cancelling keeps stock already received; there is no reversal.
- A failed transition check leaves the PO unchanged.
"""

from __future__ import annotations

from datetime import date

from flask import current_app
from sqlalchemy import or_

from ..extensions import db
from ..models import Product, Vendor, PurchaseOrder, POLineItem, PurchaseOrderReceipt
from ..models.inventory import ADJUSTMENT_PO_RECEIVE
from ..models.purchasing import (
    PO_APPROVED,
    PO_CANCELLED,
    PO_CLOSED,
    PO_DRAFT,
    PO_ORDER_TYPES,
    PO_PARTIALLY_RECEIVED,
    PO_RECEIVED,
    PO_STATUSES,
    PO_SUBMITTED,
)
from ..time_utils import parse_iso_date, utcnow
from ..validation import (
    InvalidStateTransitionError,
    NotFoundError,
    OverReceiveError,
    ValidationError,
    optional_text,
    require_non_negative_int,
    require_positive_int,
    require_text,
)
from .concurrency import begin_write, lock_for_update, run_with_retry
from .document_service import next_po_number, next_receipt_number
from .inventory_service import adjust, lock_products


REFERENCE_TYPE = "purchase_order"

CANCELLABLE_STATUSES = {PO_DRAFT, PO_SUBMITTED, PO_APPROVED, PO_PARTIALLY_RECEIVED}
RECEIVABLE_STATUSES = {PO_APPROVED, PO_PARTIALLY_RECEIVED}


# =============================================================================
# Helpers
# =============================================================================

def _load_po_for_update(po_id: int) -> PurchaseOrder:
    begin_write()
    po = lock_for_update(db.session.query(PurchaseOrder).filter_by(id=po_id)).first()
    if po is None:
        raise NotFoundError("Purchase order not found", details={"po_id": po_id})
    return po


def _require_status(po: PurchaseOrder, allowed: set[str], action: str) -> None:
    if po.status not in allowed:
        raise InvalidStateTransitionError(
            f"Cannot {action} a purchase order in status {po.status}",
            details={"po_id": po.id, "status": po.status, "allowed": sorted(allowed)},
        )


def _require_active_vendor(vendor_id) -> Vendor:
    vendor_id = require_positive_int(vendor_id, "vendor_id")
    vendor = db.session.get(Vendor, vendor_id)
    if vendor is None:
        raise NotFoundError("Vendor not found", details={"vendor_id": vendor_id})
    if not vendor.is_active:
        raise ValidationError("Vendor is inactive", details={"vendor_id": vendor_id})
    return vendor


def _require_active_product(product_id, field: str) -> Product:
    product_id = require_positive_int(product_id, field)
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError("Product not found", details={"product_id": product_id})
    if not product.is_active:
        raise ValidationError("Product is inactive", details={"product_id": product_id})
    return product


def _parse_delivery_date(value) -> date | None:
    if value is None or isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise ValidationError("expected_delivery_date must be YYYY-MM-DD")
    try:
        return parse_iso_date(value)
    except ValueError:
        raise ValidationError("expected_delivery_date must be YYYY-MM-DD")


def _parse_order_type(value) -> str:
    if value not in PO_ORDER_TYPES:
        raise ValidationError("order_type is invalid", details={"allowed": sorted(PO_ORDER_TYPES)})
    return value


def _apply_line_fields(line: POLineItem, raw: dict, idx: int, *, partial: bool) -> None:
    """Set line fields from a request entry; with partial=True absent keys keep their value."""
    prefix = f"items[{idx}]"

    if not partial or "product_id" in raw:
        product = _require_active_product(raw.get("product_id"), f"{prefix}.product_id")
        line.product_id = product.id
        line.sku = product.sku
        line.product_name = product.name

    if not partial or "quantity_ordered" in raw:
        line.quantity_ordered = require_positive_int(raw.get("quantity_ordered"), f"{prefix}.quantity_ordered")
    if not partial or "unit_cost_cents" in raw:
        line.unit_cost_cents = require_non_negative_int(raw.get("unit_cost_cents"), f"{prefix}.unit_cost_cents")
    if not partial or "tax_cents" in raw:
        line.tax_cents = require_non_negative_int(raw.get("tax_cents"), f"{prefix}.tax_cents", default=0)
    if not partial or "notes" in raw:
        line.notes = optional_text(raw.get("notes"))

    line.line_total_cents = line.quantity_ordered * line.unit_cost_cents + line.tax_cents


def _check_unique_products(lines) -> None:
    seen = set()
    for line in lines:
        if line.product_id in seen:
            raise ValidationError(
                "A product may appear on only one line per purchase order",
                details={"product_id": line.product_id},
            )
        seen.add(line.product_id)


def _recalculate_totals(po: PurchaseOrder) -> None:
    subtotal = sum(line.quantity_ordered * line.unit_cost_cents for line in po.lines)
    tax = sum(line.tax_cents for line in po.lines)
    total = subtotal + tax + po.shipping_cents + po.other_charges_cents - po.discount_cents
    if total < 0:
        raise ValidationError(
            "discount_cents exceeds the order amount",
            details={"discount_cents": po.discount_cents},
        )
    po.subtotal_cents = subtotal
    po.tax_cents = tax
    po.total_cents = total


def _apply_charges(po: PurchaseOrder, fields: dict) -> None:
    for key in ("shipping_cents", "other_charges_cents", "discount_cents"):
        if key in fields:
            setattr(po, key, require_non_negative_int(fields[key], key, default=0))


# =============================================================================
# Draft editing
# =============================================================================

def create_po(
    vendor_id: int,
    actor_id: str | None,
    items=(),
    order_type: str = "standard",
    *,
    expected_delivery_date=None,
    notes: str | None = None,
    shipping_cents: int = 0,
    other_charges_cents: int = 0,
    discount_cents: int = 0,
) -> PurchaseOrder:
    """Create a draft purchase order. An empty line list is allowed."""
    if items is None:
        items = ()
    if not isinstance(items, (list, tuple)):
        raise ValidationError("items must be a list")

    def _op() -> PurchaseOrder:
        begin_write()
        vendor = _require_active_vendor(vendor_id)

        po = PurchaseOrder(
            po_number=next_po_number(),
            vendor_id=vendor.id,
            order_type=_parse_order_type(order_type),
            status=PO_DRAFT,
            expected_delivery_date=_parse_delivery_date(expected_delivery_date),
            notes=optional_text(notes),
            created_by=actor_id,
        )
        _apply_charges(po, {
            "shipping_cents": shipping_cents,
            "other_charges_cents": other_charges_cents,
            "discount_cents": discount_cents,
        })

        for idx, raw in enumerate(items):
            if not isinstance(raw, dict):
                raise ValidationError(f"items[{idx}] must be an object")
            line = POLineItem(quantity_received=0)
            _apply_line_fields(line, raw, idx, partial=False)
            po.lines.append(line)

        _check_unique_products(po.lines)
        _recalculate_totals(po)

        db.session.add(po)
        db.session.commit()
        current_app.logger.info("Purchase order %s created by %s (%d line(s))", po.po_number, actor_id, len(po.lines))
        return po

    return run_with_retry(_op)


UPDATABLE_FIELDS = {
    "vendor_id",
    "order_type",
    "expected_delivery_date",
    "notes",
    "shipping_cents",
    "other_charges_cents",
    "discount_cents",
    "items",
}


def update_po(po_id: int, /, **fields) -> PurchaseOrder:
    """
    Edit a draft purchase order.

    When `items` is given it is the complete desired line set: entries with
    an `id` update that line, entries without one add a line, and existing
    lines not listed are removed.
    """
    unknown = sorted(set(fields) - UPDATABLE_FIELDS)
    if unknown:
        raise ValidationError(f"Field not allowed: {', '.join(unknown)}")

    def _op() -> PurchaseOrder:
        po = _load_po_for_update(po_id)
        _require_status(po, {PO_DRAFT}, "update")

        if "vendor_id" in fields:
            po.vendor_id = _require_active_vendor(fields["vendor_id"]).id
        if "order_type" in fields:
            po.order_type = _parse_order_type(fields["order_type"])
        if "expected_delivery_date" in fields:
            po.expected_delivery_date = _parse_delivery_date(fields["expected_delivery_date"])
        if "notes" in fields:
            po.notes = optional_text(fields["notes"])
        _apply_charges(po, fields)

        if "items" in fields:
            items = fields["items"]
            if not isinstance(items, list):
                raise ValidationError("items must be a list")

            existing = {line.id: line for line in po.lines}
            keep = []
            # Half-edited lines must not flush before the set is validated
            with db.session.no_autoflush:
                for idx, raw in enumerate(items):
                    if not isinstance(raw, dict):
                        raise ValidationError(f"items[{idx}] must be an object")
                    line_id = raw.get("id")
                    if line_id is None:
                        line = POLineItem(quantity_received=0)
                        _apply_line_fields(line, raw, idx, partial=False)
                    else:
                        line = existing.get(line_id)
                        if line is None:
                            raise NotFoundError(
                                "Line item not found on this purchase order",
                                details={"line_item_id": line_id},
                            )
                        _apply_line_fields(line, raw, idx, partial=True)
                    keep.append(line)

                _check_unique_products(keep)
                # delete-orphan cascade removes lines no longer listed
                po.lines = keep

        _recalculate_totals(po)
        db.session.commit()
        current_app.logger.info("Purchase order %s updated", po.po_number)
        return po

    return run_with_retry(_op)


def delete_po(po_id: int) -> None:
    """Delete a draft purchase order and its lines."""
    def _op() -> None:
        po = _load_po_for_update(po_id)
        _require_status(po, {PO_DRAFT}, "delete")
        po_number = po.po_number
        db.session.delete(po)
        db.session.commit()
        current_app.logger.info("Purchase order %s deleted", po_number)

    return run_with_retry(_op)


# =============================================================================
# Transitions
# =============================================================================

def submit_po(po_id: int, actor_id: str | None) -> PurchaseOrder:
    def _op() -> PurchaseOrder:
        po = _load_po_for_update(po_id)
        _require_status(po, {PO_DRAFT}, "submit")
        if not po.lines:
            raise ValidationError("Cannot submit a purchase order with no line items")

        po.status = PO_SUBMITTED
        po.submitted_by = actor_id
        po.submitted_at = utcnow()

        db.session.commit()
        current_app.logger.info("Purchase order %s submitted by %s", po.po_number, actor_id)
        return po

    return run_with_retry(_op)


def approve_po(po_id: int, actor_id: str | None) -> PurchaseOrder:
    def _op() -> PurchaseOrder:
        po = _load_po_for_update(po_id)
        _require_status(po, {PO_SUBMITTED}, "approve")

        po.status = PO_APPROVED
        po.approved_by = actor_id
        po.approved_at = utcnow()

        db.session.commit()
        current_app.logger.info("Purchase order %s approved by %s", po.po_number, actor_id)
        return po

    return run_with_retry(_op)


def _validate_receipts(receipts) -> dict[int, int]:
    """Aggregate receipts into {line_item_id: quantity}."""
    if not isinstance(receipts, list) or not receipts:
        raise ValidationError("receipts must be a non-empty list")

    incoming: dict[int, int] = {}
    for idx, raw in enumerate(receipts):
        if not isinstance(raw, dict):
            raise ValidationError(f"receipts[{idx}] must be an object")
        line_id = require_positive_int(raw.get("line_item_id"), f"receipts[{idx}].line_item_id")
        qty = require_positive_int(raw.get("quantity_received"), f"receipts[{idx}].quantity_received")
        incoming[line_id] = incoming.get(line_id, 0) + qty
    return incoming


def receive_items(po_id: int, receipts, actor_id: str | None, notes: str | None = None) -> PurchaseOrder:
    """
    Receive one shipment against an approved purchase order.

    Every receipt is checked against the line's remaining quantity before
    anything is applied; then stock is credited line by line through the
    ledger, quantity_received is incremented and the PO status recomputed.
    """
    incoming = _validate_receipts(receipts)

    def _op() -> PurchaseOrder:
        po = _load_po_for_update(po_id)
        _require_status(po, RECEIVABLE_STATUSES, "receive")

        line_query = (
            db.session.query(POLineItem)
            .filter(POLineItem.purchase_order_id == po.id)
            .order_by(POLineItem.id.asc())
        )
        lines = {line.id: line for line in lock_for_update(line_query).all()}

        for line_id, qty in incoming.items():
            line = lines.get(line_id)
            if line is None:
                raise NotFoundError(
                    "Line item not found on this purchase order",
                    details={"line_item_id": line_id},
                )
            if line.quantity_received + qty > line.quantity_ordered:
                raise OverReceiveError(
                    f"Receiving {qty} would exceed the ordered quantity for {line.sku}",
                    details={
                        "line_item_id": line.id,
                        "quantity_ordered": line.quantity_ordered,
                        "quantity_received": line.quantity_received,
                        "quantity_pending": line.quantity_pending,
                        "requested": qty,
                    },
                )

        receipt = PurchaseOrderReceipt(
            receipt_number=next_receipt_number(),
            purchase_order_id=po.id,
            received_by=actor_id,
            total_units=sum(incoming.values()),
            notes=optional_text(notes),
        )
        db.session.add(receipt)

        lock_products(lines[line_id].product_id for line_id in incoming)
        for line_id in sorted(incoming):
            line = lines[line_id]
            qty = incoming[line_id]
            adjust(
                line.product_id,
                qty,
                ADJUSTMENT_PO_RECEIVE,
                f"PO {po.po_number} receipt {receipt.receipt_number}",
                actor_id,
                notes=optional_text(notes),
                reference_type=REFERENCE_TYPE,
                reference_id=po.id,
            )
            line.quantity_received += qty

        if all(line.is_fully_received for line in lines.values()):
            po.status = PO_RECEIVED
            po.received_at = utcnow()
        else:
            po.status = PO_PARTIALLY_RECEIVED

        db.session.commit()
        current_app.logger.info(
            "Purchase order %s: received %d unit(s) (%s), status %s",
            po.po_number, receipt.total_units, receipt.receipt_number, po.status,
        )
        return po

    return run_with_retry(_op)


def close_po(po_id: int, actor_id: str | None) -> PurchaseOrder:
    def _op() -> PurchaseOrder:
        po = _load_po_for_update(po_id)
        _require_status(po, {PO_RECEIVED}, "close")

        po.status = PO_CLOSED
        po.closed_by = actor_id
        po.closed_at = utcnow()

        db.session.commit()
        current_app.logger.info("Purchase order %s closed by %s", po.po_number, actor_id)
        return po

    return run_with_retry(_op)


def cancel_po(po_id: int, reason: str, actor_id: str | None) -> PurchaseOrder:
    """Cancel a purchase order. Stock already received stays on hand."""
    def _op() -> PurchaseOrder:
        po = _load_po_for_update(po_id)
        cancel_reason = require_text(reason, "reason")
        _require_status(po, CANCELLABLE_STATUSES, "cancel")

        po.status = PO_CANCELLED
        po.cancelled_by = actor_id
        po.cancelled_at = utcnow()
        po.cancel_reason = cancel_reason

        db.session.commit()
        current_app.logger.info("Purchase order %s cancelled by %s", po.po_number, actor_id)
        return po

    return run_with_retry(_op)


# =============================================================================
# Reads
# =============================================================================

def get_po(po_id: int) -> PurchaseOrder:
    po = db.session.get(PurchaseOrder, po_id)
    if po is None:
        raise NotFoundError("Purchase order not found", details={"po_id": po_id})
    return po


def list_pos(
    *,
    status: str | None = None,
    vendor_id: int | None = None,
    search: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[PurchaseOrder], int]:
    """Newest first. `search` matches PO number or vendor name."""
    if status and status not in PO_STATUSES:
        raise ValidationError("status is invalid", details={"allowed": sorted(PO_STATUSES)})

    query = db.session.query(PurchaseOrder).join(Vendor, Vendor.id == PurchaseOrder.vendor_id)
    if status:
        query = query.filter(PurchaseOrder.status == status)
    if vendor_id:
        query = query.filter(PurchaseOrder.vendor_id == vendor_id)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(PurchaseOrder.po_number.ilike(pattern), Vendor.name.ilike(pattern)))

    total = query.count()

    limit = max(1, min(limit, 500))
    offset = max(0, offset)

    rows = query.order_by(PurchaseOrder.id.desc()).offset(offset).limit(limit).all()
    return rows, total
