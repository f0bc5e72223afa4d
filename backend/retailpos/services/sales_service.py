"""
Sales Service - completed sales and voids

A sale is created complete: pricing, payment check, stock deduction and the
transaction/items/payments rows are one database transaction. Nothing is
persisted unless every line deducts. A void restores exactly the quantities
recorded on the items.

LIFECYCLE: (none) -> completed -> voided (terminal)
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Product, Transaction, TransactionItem, Payment
from ..models.inventory import ADJUSTMENT_SALE, ADJUSTMENT_SALE_VOID
from ..models.sales import PAYMENT_METHODS, TRANSACTION_COMPLETED, TRANSACTION_VOIDED
from ..time_utils import utcnow
from ..validation import (
    InsufficientPaymentError,
    InvalidStateTransitionError,
    NotFoundError,
    ValidationError,
    optional_text,
    require_non_negative_int,
    require_positive_int,
    require_text,
)
from .concurrency import begin_write, lock_for_update, run_with_retry
from .document_service import next_transaction_number
from .inventory_service import adjust, lock_products


REFERENCE_TYPE = "transaction"


def round_half_up_bps(amount_cents: int, rate_bps: int) -> int:
    """amount * rate / 10000 rounded to the nearest cent, halves up."""
    return (amount_cents * rate_bps + 5000) // 10000


# =============================================================================
# Request shape validation (before any database work)
# =============================================================================

def _validate_items(items) -> list[dict]:
    if not isinstance(items, list) or not items:
        raise ValidationError("items must be a non-empty list")

    lines = []
    for idx, raw in enumerate(items):
        if not isinstance(raw, dict):
            raise ValidationError(f"items[{idx}] must be an object")
        lines.append({
            "product_id": require_positive_int(raw.get("product_id"), f"items[{idx}].product_id"),
            "quantity": require_positive_int(raw.get("quantity"), f"items[{idx}].quantity"),
            "discount_cents": require_non_negative_int(
                raw.get("discount_cents"), f"items[{idx}].discount_cents", default=0
            ),
        })
    return lines


def _validate_payments(payments) -> list[dict]:
    if not isinstance(payments, list) or not payments:
        raise ValidationError("payments must be a non-empty list")

    tenders = []
    for idx, raw in enumerate(payments):
        if not isinstance(raw, dict):
            raise ValidationError(f"payments[{idx}] must be an object")

        method = raw.get("method")
        if method not in PAYMENT_METHODS:
            raise ValidationError(
                f"payments[{idx}].method is invalid",
                details={"allowed": sorted(PAYMENT_METHODS)},
            )
        amount = require_non_negative_int(raw.get("amount_cents"), f"payments[{idx}].amount_cents")

        tender = {
            "method": method,
            "amount_cents": amount,
            "cash_tendered_cents": None,
            "change_cents": None,
            "card_type": optional_text(raw.get("card_type")),
            "card_last_four": optional_text(raw.get("card_last_four")),
            "check_number": optional_text(raw.get("check_number")),
            "reference": optional_text(raw.get("reference")),
        }

        if method == "cash" and raw.get("cash_tendered_cents") is not None:
            tendered = require_positive_int(raw["cash_tendered_cents"], f"payments[{idx}].cash_tendered_cents")
            if tendered < amount:
                raise ValidationError(f"payments[{idx}].cash_tendered_cents must be >= amount_cents")
            tender["cash_tendered_cents"] = tendered
            tender["change_cents"] = tendered - amount

        last_four = tender["card_last_four"]
        if last_four is not None and (len(last_four) != 4 or not last_four.isdigit()):
            raise ValidationError(f"payments[{idx}].card_last_four must be 4 digits")

        tenders.append(tender)
    return tenders


# =============================================================================
# Pricing
# =============================================================================

def _price_lines(lines: list[dict], products: dict[int, Product]) -> list[dict]:
    """
    Price every line from current catalog state. Pure with respect to the
    database: raises before anything is written.
    """
    default_rate = current_app.config.get("DEFAULT_TAX_RATE_BPS", 0)

    priced = []
    for idx, line in enumerate(lines):
        product = products.get(line["product_id"])
        if product is None:
            raise NotFoundError("Product not found", details={"product_id": line["product_id"]})
        if not product.is_active:
            raise ValidationError("Product is inactive", details={"product_id": product.id})

        gross = line["quantity"] * product.price_cents
        discount = line["discount_cents"]
        if discount > gross:
            raise ValidationError(
                f"items[{idx}].discount_cents exceeds line amount",
                details={"line_amount_cents": gross, "discount_cents": discount},
            )

        rate = product.tax_rate_bps if product.tax_rate_bps is not None else default_rate
        tax = round_half_up_bps(gross - discount, rate)

        priced.append({
            "line_number": idx + 1,
            "product_id": product.id,
            "product_sku": product.sku,
            "product_name": product.name,
            "unit_price_cents": product.price_cents,
            "tax_rate_bps": rate,
            "quantity": line["quantity"],
            "discount_cents": discount,
            "tax_cents": tax,
            "line_total_cents": gross - discount + tax,
        })
    return priced


def _totals(priced: list[dict]) -> dict:
    subtotal = sum(p["quantity"] * p["unit_price_cents"] for p in priced)
    discount = sum(p["discount_cents"] for p in priced)
    tax = sum(p["tax_cents"] for p in priced)
    return {
        "subtotal_cents": subtotal,
        "discount_cents": discount,
        "tax_cents": tax,
        "total_cents": subtotal - discount + tax,
    }


def quote_transaction(items) -> dict:
    """Price a prospective sale without locking or mutating anything."""
    lines = _validate_items(items)
    ids = {line["product_id"] for line in lines}
    products = {p.id: p for p in db.session.query(Product).filter(Product.id.in_(ids)).all()}
    priced = _price_lines(lines, products)
    return {"items": priced, **_totals(priced)}


# =============================================================================
# Create / void
# =============================================================================

def create_transaction(
    items,
    payments,
    actor_id: str | None,
    *,
    customer_id: int | None = None,
    notes: str | None = None,
) -> Transaction:
    """
    Create a completed sale, deducting stock for every line.

    All-or-nothing: any InsufficientStockError (or other failure) rolls back
    the whole call, so no Transaction row and no stock change survive.
    """
    lines = _validate_items(items)
    tenders = _validate_payments(payments)
    if customer_id is not None:
        customer_id = require_positive_int(customer_id, "customer_id")

    def _op() -> Transaction:
        begin_write()
        products = lock_products(line["product_id"] for line in lines)
        priced = _price_lines(lines, products)
        totals = _totals(priced)

        paid = sum(t["amount_cents"] for t in tenders)
        if paid < totals["total_cents"]:
            raise InsufficientPaymentError(
                "Payments do not cover the transaction total",
                details={"total_cents": totals["total_cents"], "paid_cents": paid},
            )

        txn = Transaction(
            transaction_number=next_transaction_number(),
            status=TRANSACTION_COMPLETED,
            cashier_id=actor_id,
            customer_id=customer_id,
            amount_paid_cents=paid,
            change_due_cents=paid - totals["total_cents"],
            notes=optional_text(notes),
            completed_at=utcnow(),
            **totals,
        )
        db.session.add(txn)
        db.session.flush()

        for line in priced:
            adjust(
                line["product_id"],
                -line["quantity"],
                ADJUSTMENT_SALE,
                f"Sale {txn.transaction_number}",
                actor_id,
                reference_type=REFERENCE_TYPE,
                reference_id=txn.id,
            )
            db.session.add(TransactionItem(transaction_id=txn.id, **line))

        for tender in tenders:
            db.session.add(Payment(transaction_id=txn.id, **tender))

        db.session.commit()
        current_app.logger.info(
            "Transaction %s completed by %s: %d line(s), total %d cents",
            txn.transaction_number, actor_id, len(priced), txn.total_cents,
        )
        return txn

    return run_with_retry(_op)


def void_transaction(transaction_id: int, reason: str, actor_id: str | None) -> Transaction:
    """
    Void a completed sale and restore the stock it deducted.

    Restores each item's recorded quantity regardless of later catalog edits.
    """
    def _op() -> Transaction:
        begin_write()
        txn = lock_for_update(db.session.query(Transaction).filter_by(id=transaction_id)).first()
        if txn is None:
            raise NotFoundError("Transaction not found", details={"transaction_id": transaction_id})

        void_reason = require_text(reason, "reason")

        if txn.status != TRANSACTION_COMPLETED:
            raise InvalidStateTransitionError(
                f"Cannot void a {txn.status} transaction",
                details={"status": txn.status},
            )

        lock_products(item.product_id for item in txn.items)
        for item in txn.items:
            adjust(
                item.product_id,
                item.quantity,
                ADJUSTMENT_SALE_VOID,
                void_reason,
                actor_id,
                reference_type=REFERENCE_TYPE,
                reference_id=txn.id,
            )

        txn.status = TRANSACTION_VOIDED
        txn.voided_at = utcnow()
        txn.voided_by = actor_id
        txn.void_reason = void_reason

        db.session.commit()
        current_app.logger.info("Transaction %s voided by %s", txn.transaction_number, actor_id)
        return txn

    return run_with_retry(_op)


# =============================================================================
# Reads
# =============================================================================

def get_transaction(transaction_id: int) -> Transaction:
    txn = db.session.get(Transaction, transaction_id)
    if txn is None:
        raise NotFoundError("Transaction not found", details={"transaction_id": transaction_id})
    return txn


def get_transaction_by_number(transaction_number: str) -> Transaction:
    txn = db.session.query(Transaction).filter_by(transaction_number=transaction_number).first()
    if txn is None:
        raise NotFoundError("Transaction not found", details={"transaction_number": transaction_number})
    return txn


def list_transactions(
    *,
    status: str | None = None,
    cashier_id: str | None = None,
    from_date=None,
    to_date=None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[Transaction], int]:
    """Newest first. Date bounds apply to completed_at and are inclusive."""
    query = db.session.query(Transaction)
    if status:
        query = query.filter(Transaction.status == status)
    if cashier_id:
        query = query.filter(Transaction.cashier_id == cashier_id)
    if from_date:
        query = query.filter(Transaction.completed_at >= from_date)
    if to_date:
        query = query.filter(Transaction.completed_at <= to_date)

    total = query.count()

    limit = max(1, min(limit, 500))
    offset = max(0, offset)

    rows = query.order_by(Transaction.id.desc()).offset(offset).limit(limit).all()
    return rows, total
