# backend/retailpos/services/products_service.py
"""
Products Service

Catalog support for the inventory engine. Stock is never patched here:
initial stock on create is recorded through the ledger as an "initial"
adjustment, and every later change goes through sales, receiving or manual
adjustments.
"""
from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Product, Vendor
from ..models.inventory import ADJUSTMENT_INITIAL
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    enforce_rules_product,
    require_non_negative_int,
    validate_payload,
)
from .concurrency import begin_write, run_with_retry
from .inventory_service import adjust

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "sku",
        "name",
        "description",
        "price_cents",
        "tax_rate_bps",
        "reorder_level",
        "reorder_quantity",
        "vendor_id",
    },
    required_on_create={"sku", "name", "price_cents"},
)


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_POLICY.writable_fields:
            continue
        setattr(p, k, v)


def _check_vendor(vendor_id: int | None) -> None:
    if vendor_id is None:
        return
    vendor = db.session.get(Vendor, vendor_id)
    if vendor is None:
        raise NotFoundError("Vendor not found", details={"vendor_id": vendor_id})
    if not vendor.is_active:
        raise ValidationError("Vendor is inactive", details={"vendor_id": vendor_id})


def _check_sku_free(sku: str, exclude_id: int | None = None) -> None:
    query = db.session.query(Product.id).filter(Product.sku == sku)
    if exclude_id is not None:
        query = query.filter(Product.id != exclude_id)
    if query.first():
        raise ConflictError("SKU already exists.", details={"sku": sku})


def get_product(product_id: int) -> Product:
    p = db.session.get(Product, product_id)
    if p is None:
        raise NotFoundError("Product not found", details={"product_id": product_id})
    return p


def create_product(payload: dict, actor_id: str | None) -> Product:
    """
    Create a product from a JSON-style payload.

    `initial_quantity` (optional, >= 0) is not a column: a positive value is
    booked through the ledger in the same database transaction.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    payload = dict(payload)
    initial_quantity = require_non_negative_int(payload.pop("initial_quantity", None), "initial_quantity", default=0)

    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
    enforce_rules_product(patch)

    def _op() -> Product:
        begin_write()
        _check_sku_free(patch["sku"])
        _check_vendor(patch.get("vendor_id"))

        p = Product(quantity_in_stock=0, is_active=True)
        apply_product_patch(p, patch)
        db.session.add(p)
        db.session.flush()

        if initial_quantity:
            adjust(p.id, initial_quantity, ADJUSTMENT_INITIAL, "Initial stock", actor_id)

        db.session.commit()
        current_app.logger.info("Product %s created (initial stock %d)", p.sku, initial_quantity)
        return p

    return run_with_retry(_op)


def update_product(product_id: int, payload: dict) -> Product:
    """Patch non-stock fields. Inactive products are read-only."""
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
    enforce_rules_product(patch)

    def _op() -> Product:
        begin_write()
        p = get_product(product_id)
        if not p.is_active:
            raise ValidationError("Product is inactive", details={"product_id": product_id})

        if "sku" in patch and patch["sku"] != p.sku:
            _check_sku_free(patch["sku"], exclude_id=p.id)
        if "vendor_id" in patch:
            _check_vendor(patch["vendor_id"])

        apply_product_patch(p, patch)
        db.session.commit()
        current_app.logger.info("Product %s updated: %s", p.sku, ", ".join(sorted(patch)))
        return p

    return run_with_retry(_op)


def deactivate_product(product_id: int) -> Product:
    """Tombstone a product. History stays readable; mutations are rejected from now on."""
    def _op() -> Product:
        begin_write()
        p = get_product(product_id)
        if not p.is_active:
            raise ValidationError("Product is already inactive", details={"product_id": product_id})

        p.is_active = False
        db.session.commit()
        current_app.logger.info("Product %s deactivated", p.sku)
        return p

    return run_with_retry(_op)
