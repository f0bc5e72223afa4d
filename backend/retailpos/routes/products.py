# Overview: Flask API routes for product catalog operations; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_actor
from ..services import products_service
from ..validation import PosError


products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.post("")
@require_actor
def create_product_route():
    """
    Create a product.

    Request body: sku, name, price_cents (required); description, tax_rate_bps,
    reorder_level, reorder_quantity, vendor_id, initial_quantity (optional).
    """
    try:
        product = products_service.create_product(request.get_json(silent=True), g.actor_id)
        return jsonify({"product": product.to_dict()}), 201
    except PosError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.get("/<int:product_id>")
def get_product_route(product_id: int):
    try:
        product = products_service.get_product(product_id)
        return jsonify({"product": product.to_dict()}), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.http_status


@products_bp.patch("/<int:product_id>")
@require_actor
def update_product_route(product_id: int):
    """Patch non-stock fields. quantity_in_stock is rejected; use adjustments."""
    try:
        product = products_service.update_product(product_id, request.get_json(silent=True))
        return jsonify({"product": product.to_dict()}), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to update product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.post("/<int:product_id>/deactivate")
@require_actor
def deactivate_product_route(product_id: int):
    try:
        product = products_service.deactivate_product(product_id)
        return jsonify({"product": product.to_dict()}), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to deactivate product")
        return jsonify({"error": "Internal server error"}), 500
