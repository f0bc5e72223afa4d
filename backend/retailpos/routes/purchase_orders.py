# Overview: Flask API routes for purchase orders; parses input and returns JSON responses.

"""
Purchase Order Routes

Lifecycle transitions are explicit POST actions; header/line edits are
PATCH on a draft. Reorder suggestions live here because their only use is
seeding a new draft.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_actor
from ..services import purchase_order_service, reorder_service
from ..validation import PosError


purchase_orders_bp = Blueprint("purchase_orders", __name__, url_prefix="/api/purchase-orders")


def _po_response(po, status: int = 200):
    return jsonify({"purchase_order": po.to_dict()}), status


@purchase_orders_bp.post("")
@require_actor
def create_po_route():
    """
    Create a draft purchase order.

    Request body:
    {
        "vendor_id": 1,                       // required
        "order_type": "standard",             // standard | urgent | drop_ship
        "expected_delivery_date": "2026-01-31",
        "shipping_cents": 0, "other_charges_cents": 0, "discount_cents": 0,
        "notes": "...",
        "items": [{"product_id": 1, "quantity_ordered": 10, "unit_cost_cents": 250, "tax_cents": 0}]
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        po = purchase_order_service.create_po(
            data.get("vendor_id"),
            g.actor_id,
            items=data.get("items") or [],
            order_type=data.get("order_type", "standard"),
            expected_delivery_date=data.get("expected_delivery_date"),
            notes=data.get("notes"),
            shipping_cents=data.get("shipping_cents", 0),
            other_charges_cents=data.get("other_charges_cents", 0),
            discount_cents=data.get("discount_cents", 0),
        )
        return _po_response(po, 201)
    except PosError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to create purchase order")
        return jsonify({"error": "Internal server error"}), 500


@purchase_orders_bp.get("")
def list_pos_route():
    """
    Query parameters:
    - status, vendor_id, search (PO number or vendor name)
    - limit (default 50, max 500), offset (default 0)
    """
    limit = request.args.get("limit", 50, type=int)
    offset = request.args.get("offset", 0, type=int)
    try:
        rows, total = purchase_order_service.list_pos(
            status=request.args.get("status"),
            vendor_id=request.args.get("vendor_id", type=int),
            search=request.args.get("search"),
            limit=limit,
            offset=offset,
        )
    except PosError as e:
        return jsonify(e.to_dict()), e.http_status

    return jsonify({
        "items": [po.to_dict(include_lines=False) for po in rows],
        "count": total,
        "limit": limit,
        "offset": offset,
    })


@purchase_orders_bp.get("/reorder-suggestions")
def reorder_suggestions_route():
    vendors = reorder_service.get_reorder_suggestions()
    return jsonify({"vendors": vendors, "count": len(vendors)})


@purchase_orders_bp.post("/from-suggestions")
@require_actor
def create_from_suggestions_route():
    """Request body: {"vendor_id": 1}"""
    data = request.get_json(silent=True) or {}
    try:
        po = reorder_service.create_po_from_suggestions(data.get("vendor_id"), g.actor_id)
        return _po_response(po, 201)
    except PosError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to create purchase order from suggestions")
        return jsonify({"error": "Internal server error"}), 500


@purchase_orders_bp.get("/<int:po_id>")
def get_po_route(po_id: int):
    try:
        return _po_response(purchase_order_service.get_po(po_id))
    except PosError as e:
        return jsonify(e.to_dict()), e.http_status


@purchase_orders_bp.patch("/<int:po_id>")
@require_actor
def update_po_route(po_id: int):
    """
    Edit a draft. `items`, when present, is the complete line set: entries
    with "id" update that line, entries without add one, missing lines are
    removed.
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({"error": "Invalid JSON payload", "code": "VALIDATION_ERROR"}), 400
    try:
        return _po_response(purchase_order_service.update_po(po_id, **data))
    except PosError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to update purchase order")
        return jsonify({"error": "Internal server error"}), 500


@purchase_orders_bp.delete("/<int:po_id>")
@require_actor
def delete_po_route(po_id: int):
    try:
        purchase_order_service.delete_po(po_id)
        return jsonify({"deleted": True, "id": po_id}), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to delete purchase order")
        return jsonify({"error": "Internal server error"}), 500


@purchase_orders_bp.post("/<int:po_id>/submit")
@require_actor
def submit_po_route(po_id: int):
    try:
        return _po_response(purchase_order_service.submit_po(po_id, g.actor_id))
    except PosError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to submit purchase order")
        return jsonify({"error": "Internal server error"}), 500


@purchase_orders_bp.post("/<int:po_id>/approve")
@require_actor
def approve_po_route(po_id: int):
    try:
        return _po_response(purchase_order_service.approve_po(po_id, g.actor_id))
    except PosError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to approve purchase order")
        return jsonify({"error": "Internal server error"}), 500


@purchase_orders_bp.post("/<int:po_id>/receive")
@require_actor
def receive_po_route(po_id: int):
    """
    Receive one shipment.

    Request body:
    {
        "receipts": [{"line_item_id": 1, "quantity_received": 50}],
        "notes": "..."
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        po = purchase_order_service.receive_items(
            po_id, data.get("receipts"), g.actor_id, notes=data.get("notes")
        )
        return _po_response(po)
    except PosError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to receive purchase order items")
        return jsonify({"error": "Internal server error"}), 500


@purchase_orders_bp.post("/<int:po_id>/close")
@require_actor
def close_po_route(po_id: int):
    try:
        return _po_response(purchase_order_service.close_po(po_id, g.actor_id))
    except PosError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to close purchase order")
        return jsonify({"error": "Internal server error"}), 500


@purchase_orders_bp.post("/<int:po_id>/cancel")
@require_actor
def cancel_po_route(po_id: int):
    """Request body: {"reason": "..."}  // required"""
    data = request.get_json(silent=True) or {}
    try:
        return _po_response(purchase_order_service.cancel_po(po_id, data.get("reason"), g.actor_id))
    except PosError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to cancel purchase order")
        return jsonify({"error": "Internal server error"}), 500
