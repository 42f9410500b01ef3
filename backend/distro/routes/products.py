# Overview: Flask API routes for products and stock corrections.

# backend/distro/routes/products.py
"""
Product / Inventory API routes

Stock is only ever changed through inventory_service, which guards every
write with the non-negativity check and appends a StockMovement.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import DomainError, ValidationError
from ..services import inventory_service
from ..validation import coerce_int, optional_str, require_int
from ..decorators import require_auth, require_permission


products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("/<int:product_id>")
@require_auth
def get_product_route(product_id: int):
    try:
        product = inventory_service.get_product(product_id)
        return jsonify({"product": product.to_dict()}), 200

    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code


@products_bp.post("/<int:product_id>/stock")
@require_auth
@require_permission("ADJUST_STOCK")
def adjust_stock_route(product_id: int):
    """
    Correct stock by a signed delta.

    Request body:
    {
        "delta": -3,
        "note": "damaged in transit"   (optional)
    }

    Returns:
        200: Product with new stock
        409: InsufficientStockError if the result would be negative
    """
    try:
        data = request.get_json(silent=True) or {}
        delta = require_int(data, "delta")
        product = inventory_service.adjust_stock(
            product_id,
            delta,
            actor=g.actor,
            note=optional_str(data, "note", max_length=2000),
        )
        return jsonify({"product": product.to_dict()}), 200

    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to adjust stock")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.get("/<int:product_id>/movements")
@require_auth
def list_movements_route(product_id: int):
    try:
        limit = request.args.get("limit")
        limit = min(coerce_int("limit", limit), 500) if limit else 100
        if limit < 1:
            raise ValidationError("limit must be >= 1")
        movements = inventory_service.list_movements(product_id, limit=limit)
        return jsonify({"movements": [m.to_dict() for m in movements]}), 200

    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
