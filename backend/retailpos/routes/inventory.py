# Overview: Flask API routes for inventory operations; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_actor
from ..services import adjustment_service, inventory_service
from ..validation import PosError


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.post("/adjustments")
@require_actor
def create_adjustment_route():
    """
    Record a manual stock adjustment.

    Request body:
    {
        "product_id": 1,
        "adjustment_type": "damage",   // damage | theft | found | correction | initial
        "quantity_change": -3,
        "reason": "Water damage",      // required
        "notes": "..."
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        adjustment = adjustment_service.create_adjustment(
            data.get("product_id"),
            data.get("adjustment_type"),
            data.get("quantity_change"),
            data.get("reason"),
            g.actor_id,
            notes=data.get("notes"),
        )
        return jsonify({"adjustment": adjustment.to_dict()}), 201
    except PosError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to create adjustment")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.get("/adjustments")
def list_adjustments_route():
    """
    Query parameters:
    - product_id, adjustment_type: optional filters
    - limit (default 100, max 500), offset (default 0)
    """
    limit = request.args.get("limit", 100, type=int)
    offset = request.args.get("offset", 0, type=int)

    rows, total = inventory_service.list_adjustments(
        product_id=request.args.get("product_id", type=int),
        adjustment_type=request.args.get("adjustment_type"),
        limit=limit,
        offset=offset,
    )
    return jsonify({
        "items": [a.to_dict() for a in rows],
        "count": total,
        "limit": limit,
        "offset": offset,
    })


@inventory_bp.get("/adjustments/<int:adjustment_id>")
def get_adjustment_route(adjustment_id: int):
    try:
        adjustment = adjustment_service.get_adjustment(adjustment_id)
        return jsonify({"adjustment": adjustment.to_dict()}), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.http_status


@inventory_bp.get("/products/<int:product_id>/history")
def product_history_route(product_id: int):
    """Ledger rows for one product, oldest first, plus current on-hand."""
    try:
        rows = inventory_service.get_product_history(product_id)
        return jsonify({
            "product_id": product_id,
            "quantity_on_hand": inventory_service.get_quantity_on_hand(product_id),
            "history": [a.to_dict() for a in rows],
        }), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.http_status


@inventory_bp.get("/low-stock")
def low_stock_route():
    items = inventory_service.get_low_stock_products()
    return jsonify({"items": items, "count": len(items)})


@inventory_bp.get("/out-of-stock")
def out_of_stock_route():
    items = inventory_service.get_out_of_stock_products()
    return jsonify({"items": items, "count": len(items)})
