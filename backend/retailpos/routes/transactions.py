# Overview: Flask API routes for sales transactions; parses input and returns JSON responses.

"""Sales transaction routes: create (complete), quote, read, void."""

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_actor
from ..services import sales_service
from ..time_utils import parse_iso_datetime
from ..validation import PosError


transactions_bp = Blueprint("transactions", __name__, url_prefix="/api/transactions")


@transactions_bp.post("")
@require_actor
def create_transaction_route():
    """
    Create a completed sale.

    Request body:
    {
        "items": [{"product_id": 1, "quantity": 2, "discount_cents": 0}],
        "payments": [{"method": "cash", "amount_cents": 1000, "cash_tendered_cents": 2000}],
        "customer_id": null,
        "notes": null
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        txn = sales_service.create_transaction(
            data.get("items"),
            data.get("payments"),
            g.actor_id,
            customer_id=data.get("customer_id"),
            notes=data.get("notes"),
        )
        return jsonify({"transaction": txn.to_dict()}), 201
    except PosError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to create transaction")
        return jsonify({"error": "Internal server error"}), 500


@transactions_bp.post("/quote")
def quote_transaction_route():
    """Price a cart without touching stock."""
    data = request.get_json(silent=True) or {}
    try:
        return jsonify({"quote": sales_service.quote_transaction(data.get("items"))}), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.http_status


@transactions_bp.get("")
def list_transactions_route():
    """
    Query parameters:
    - status: completed | voided
    - cashier_id
    - from, to: ISO-8601 bounds on completed_at (inclusive)
    - limit (default 50, max 500), offset (default 0)
    """
    limit = request.args.get("limit", 50, type=int)
    offset = request.args.get("offset", 0, type=int)
    try:
        from_date = parse_iso_datetime(request.args.get("from"))
        to_date = parse_iso_datetime(request.args.get("to"))
    except ValueError:
        return jsonify({"error": "from/to must be ISO-8601 datetimes", "code": "VALIDATION_ERROR"}), 400

    rows, total = sales_service.list_transactions(
        status=request.args.get("status"),
        cashier_id=request.args.get("cashier_id"),
        from_date=from_date,
        to_date=to_date,
        limit=limit,
        offset=offset,
    )
    return jsonify({
        "items": [t.to_dict(include_lines=False) for t in rows],
        "count": total,
        "limit": limit,
        "offset": offset,
    })


@transactions_bp.get("/<int:transaction_id>")
def get_transaction_route(transaction_id: int):
    try:
        txn = sales_service.get_transaction(transaction_id)
        return jsonify({"transaction": txn.to_dict()}), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.http_status


@transactions_bp.post("/<int:transaction_id>/void")
@require_actor
def void_transaction_route(transaction_id: int):
    """
    Void a completed sale and restore its stock.

    Request body: {"reason": "..."}  // required
    """
    data = request.get_json(silent=True) or {}
    try:
        txn = sales_service.void_transaction(transaction_id, data.get("reason"), g.actor_id)
        return jsonify({"transaction": txn.to_dict()}), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to void transaction")
        return jsonify({"error": "Internal server error"}), 500
