from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Boolean, Integer, String, Text
from sqlalchemy.orm import DeclarativeMeta


# Maximum price: $9,999,999.99 (999,999,999 cents)
MAX_PRICE_CENTS = 999_999_999

# 100% expressed in basis points
MAX_TAX_RATE_BPS = 10_000


class PosError(Exception):
    """
    Base class for every typed domain error.

    The API layer maps `http_status` to the response; `code` is stable and
    safe for clients to branch on, `message` is for humans.
    """
    code = "POS_ERROR"
    http_status = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": self.message, "code": self.code, "details": self.details}


class ValidationError(PosError):
    """400-level input problem, raised before any mutation."""
    code = "VALIDATION_ERROR"
    http_status = 400


class NotFoundError(PosError):
    code = "NOT_FOUND"
    http_status = 404


class InsufficientStockError(PosError):
    """Mutation would drive quantity_in_stock below zero."""
    code = "INSUFFICIENT_STOCK"
    http_status = 409


class InsufficientPaymentError(PosError):
    code = "INSUFFICIENT_PAYMENT"
    http_status = 400


class OverReceiveError(PosError):
    """Receipt exceeds the remaining ordered quantity on a PO line."""
    code = "OVER_RECEIVE"
    http_status = 409


class InvalidStateTransitionError(PosError):
    code = "INVALID_STATE_TRANSITION"
    http_status = 409


class ConflictError(PosError):
    """Uniqueness clash, e.g. a duplicate SKU or vendor code."""
    code = "CONFLICT"
    http_status = 409


class ConcurrencyConflictError(PosError):
    """Lock wait exceeded after retries; the caller may retry the whole operation."""
    code = "CONCURRENCY_CONFLICT"
    http_status = 503


# =============================================================================
# Scalar helpers
# =============================================================================

def require_int(value: Any, field: str) -> int:
    # bool is an int subclass; "true" is never a quantity
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{field} must be an integer")
    return value


def require_positive_int(value: Any, field: str) -> int:
    value = require_int(value, field)
    if value <= 0:
        raise ValidationError(f"{field} must be > 0")
    return value


def require_non_negative_int(value: Any, field: str, default: int | None = None) -> int:
    if value is None and default is not None:
        return default
    value = require_int(value, field)
    if value < 0:
        raise ValidationError(f"{field} must be >= 0")
    return value


def require_text(value: Any, field: str) -> str:
    if value is None or not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field} is required")
    return value.strip()


def optional_text(value: Any) -> str | None:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


# =============================================================================
# Model payload validation
# =============================================================================

@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] | None = None


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        if isinstance(value, str):
            stripped = value.strip()
            # Reject scientific notation and decimals ("1e3", "12.5")
            if not stripped or "e" in stripped.lower() or "." in stripped:
                raise ValidationError(f"{col.key} must be a plain integer")
            try:
                return int(stripped)
            except ValueError:
                raise ValidationError(f"{col.key} must be an integer")
        raise ValidationError(f"{col.key} must be an integer")

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        raise ValidationError(f"{col.key} must be a boolean")

    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if f not in payload)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def enforce_rules_product(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    price = patch.get("price_cents")
    if price is not None:
        if price < 0:
            raise ValidationError("price_cents must be >= 0")
        if price > MAX_PRICE_CENTS:
            raise ValidationError(f"price_cents cannot exceed {MAX_PRICE_CENTS} (${MAX_PRICE_CENTS / 100:,.2f})")

    rate = patch.get("tax_rate_bps")
    if rate is not None and not 0 <= rate <= MAX_TAX_RATE_BPS:
        raise ValidationError(f"tax_rate_bps must be between 0 and {MAX_TAX_RATE_BPS}")

    for key in ("reorder_level", "reorder_quantity"):
        if patch.get(key) is not None and patch[key] < 0:
            raise ValidationError(f"{key} must be >= 0")
