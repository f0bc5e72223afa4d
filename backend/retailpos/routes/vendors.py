# Overview: Flask API routes for vendor operations; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, current_app

from ..decorators import require_actor
from ..services import vendor_service
from ..validation import PosError


vendors_bp = Blueprint("vendors", __name__, url_prefix="/api/vendors")


@vendors_bp.get("")
def list_vendors_route():
    """
    Query parameters:
    - include_inactive: Include inactive vendors (default: false)
    """
    include_inactive = request.args.get("include_inactive", "false").lower() == "true"
    vendors = vendor_service.list_vendors(include_inactive=include_inactive)
    return jsonify({"items": [v.to_dict() for v in vendors], "count": len(vendors)})


@vendors_bp.post("")
@require_actor
def create_vendor_route():
    """
    Create a new vendor.

    Request body:
    {
        "name": "Vendor Name",  // required
        "code": "VCODE",        // optional, unique
        "contact_name": "...",
        "contact_email": "...",
        "contact_phone": "...",
        "notes": "..."
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        vendor = vendor_service.create_vendor(
            name=data.get("name"),
            code=data.get("code"),
            contact_name=data.get("contact_name"),
            contact_email=data.get("contact_email"),
            contact_phone=data.get("contact_phone"),
            notes=data.get("notes"),
        )
        return jsonify({"vendor": vendor.to_dict()}), 201
    except PosError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to create vendor")
        return jsonify({"error": "Internal server error"}), 500


@vendors_bp.post("/<int:vendor_id>/deactivate")
@require_actor
def deactivate_vendor_route(vendor_id: int):
    try:
        vendor = vendor_service.deactivate_vendor(vendor_id)
        return jsonify({"vendor": vendor.to_dict()}), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to deactivate vendor")
        return jsonify({"error": "Internal server error"}), 500
