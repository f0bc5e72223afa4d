# Overview: Service-layer operations for vendors; encapsulates business logic and database work.

"""
Vendor Service

Vendors are the counterparty on every purchase order and the grouping key
for reorder suggestions (via Product.vendor_id).

Vendor codes are unique when specified. Vendors are never deleted; a
deactivated vendor keeps its purchase order history but cannot be used on
new orders.
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Vendor
from ..validation import ConflictError, NotFoundError, ValidationError, optional_text, require_text


def create_vendor(
    *,
    name: str,
    code: str | None = None,
    contact_name: str | None = None,
    contact_email: str | None = None,
    contact_phone: str | None = None,
    notes: str | None = None,
) -> Vendor:
    """
    Create a new vendor.

    Raises:
        ValidationError: If name is blank
        ConflictError: If code is already used by another vendor
    """
    name = require_text(name, "name")
    code = optional_text(code)

    if code:
        existing = db.session.query(Vendor).filter_by(code=code).first()
        if existing:
            raise ConflictError(f"Vendor code '{code}' already exists", details={"code": code})

    vendor = Vendor(
        name=name,
        code=code,
        contact_name=optional_text(contact_name),
        contact_email=optional_text(contact_email),
        contact_phone=optional_text(contact_phone),
        notes=optional_text(notes),
        is_active=True,
    )
    db.session.add(vendor)
    db.session.commit()
    current_app.logger.info("Vendor %s created (id=%s)", vendor.name, vendor.id)
    return vendor


def get_vendor(vendor_id: int) -> Vendor:
    vendor = db.session.get(Vendor, vendor_id)
    if vendor is None:
        raise NotFoundError(f"Vendor {vendor_id} not found", details={"vendor_id": vendor_id})
    return vendor


def list_vendors(*, include_inactive: bool = False) -> list[Vendor]:
    query = db.session.query(Vendor)
    if not include_inactive:
        query = query.filter(Vendor.is_active.is_(True))
    return query.order_by(Vendor.name.asc()).all()


def deactivate_vendor(vendor_id: int) -> Vendor:
    """
    Deactivate a vendor (soft delete).

    Raises:
        NotFoundError: If vendor not found
        ValidationError: If vendor already inactive
    """
    vendor = get_vendor(vendor_id)
    if not vendor.is_active:
        raise ValidationError("Vendor is already inactive", details={"vendor_id": vendor_id})

    vendor.is_active = False
    db.session.commit()
    current_app.logger.info("Vendor %s deactivated", vendor.name)
    return vendor
