# Overview: Flask API routes for orders; parses input and returns JSON responses.

# backend/distro/routes/orders.py
"""
Order API Routes

DESIGN:
- Drafts are upserted one line at a time (POST /draft is idempotent per
  store, creator and product)
- Each lifecycle transition is its own endpoint
- The acting user is taken from the bearer token and passed explicitly
  to the service layer

ERRORS:
- 400 ValidationError, 403 UnauthorizedError, 404 NotFoundError,
  409 InvalidTransitionError / InsufficientStockError
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import DomainError, ValidationError
from ..services import order_service
from ..validation import coerce_int, optional_str, parse_order_line, require_int
from ..decorators import require_auth, require_permission


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


def _int_arg(name: str, minimum: int | None = None):
    value = request.args.get(name)
    if value is None or value == "":
        return None
    value = coerce_int(name, value)
    if minimum is not None and value < minimum:
        raise ValidationError(f"{name} must be >= {minimum}")
    return value


# =============================================================================
# DRAFTS
# =============================================================================

@orders_bp.post("/draft")
@require_auth
@require_permission("CREATE_ORDER")
def upsert_draft_route():
    """
    Add or update a line on the caller's open draft for a store.

    Request body:
    {
        "store_id": 1,
        "product_id": 7,
        "quantity": 4,
        "bonus_quantity": 1,            (optional, default 0)
        "discount_percentage": "10",    (optional, default 0)
        "payment_method": "cash",       (optional: cash | credit)
        "notes": "deliver Monday"       (optional)
    }

    Returns:
        200: Draft order with all lines
    """
    try:
        data = request.get_json(silent=True) or {}
        store_id = require_int(data, "store_id", minimum=1)
        line = parse_order_line(data)
        order = order_service.create_draft_order(
            store_id,
            line,
            g.actor,
            notes=optional_str(data, "notes", max_length=2000),
            payment_method=data.get("payment_method"),
        )
        return jsonify({"order": order.to_dict()}), 200

    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to upsert draft order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.patch("/<int:order_id>")
@require_auth
def update_draft_route(order_id: int):
    """Edit notes / payment method of a draft (creator only)."""
    try:
        data = request.get_json(silent=True) or {}
        order = order_service.update_draft_details(
            order_id,
            g.actor,
            notes=optional_str(data, "notes", max_length=2000),
            payment_method=data.get("payment_method"),
        )
        return jsonify({"order": order.to_dict()}), 200

    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update draft order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.delete("/<int:order_id>/lines/<int:product_id>")
@require_auth
def remove_draft_line_route(order_id: int, product_id: int):
    try:
        order = order_service.remove_draft_line(order_id, product_id, g.actor)
        return jsonify({"order": order.to_dict()}), 200

    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to remove draft line")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# TRANSITIONS
# =============================================================================

@orders_bp.post("/<int:order_id>/submit")
@require_auth
def submit_order_route(order_id: int):
    """
    Submit a draft (draft -> pending). Reserves stock for every line.

    Returns:
        200: Pending order
        409: InsufficientStockError {product_id, available, needed}
             or InvalidTransitionError
    """
    try:
        order = order_service.submit_order(order_id, g.actor)
        return jsonify({"order": order.to_dict()}), 200

    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to submit order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("/<int:order_id>/approve")
@require_auth
@require_permission("APPROVE_ORDER")
def approve_order_route(order_id: int):
    try:
        order = order_service.approve_order(order_id, g.actor)
        return jsonify({"order": order.to_dict()}), 200

    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to approve order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("/<int:order_id>/reject")
@require_auth
@require_permission("REJECT_ORDER")
def reject_order_route(order_id: int):
    """
    Reject a pending or approved order and release its stock.

    Request body:
    {
        "reason": "Out of delivery area"   (optional)
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        order = order_service.reject_order(order_id, g.actor, reason=optional_str(data, "reason"))
        return jsonify({"order": order.to_dict()}), 200

    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to reject order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("/<int:order_id>/fulfill")
@require_auth
@require_permission("FULFILL_ORDER")
def fulfill_order_route(order_id: int):
    try:
        order = order_service.fulfill_order(order_id, g.actor)
        return jsonify({"order": order.to_dict()}), 200

    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to fulfill order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.delete("/<int:order_id>")
@require_auth
def delete_order_route(order_id: int):
    """
    Delete an order. Drafts: creator. Anything else: admin, with the
    stock reservation (if still held) released.
    """
    try:
        result = order_service.delete_order(order_id, g.actor)
        return jsonify(result), 200

    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete order")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# QUERIES
# =============================================================================

@orders_bp.get("/", strict_slashes=False)
@require_auth
def list_orders_route():
    """
    List orders visible to the caller.

    Query params: store_id, status, created_by, officer_id, limit (max 500), offset
    """
    try:
        limit = min(_int_arg("limit", minimum=1) or 100, 500)
        orders = order_service.list_orders(
            g.actor,
            store_id=_int_arg("store_id"),
            status=request.args.get("status") or None,
            created_by_user_id=_int_arg("created_by"),
            officer_id=_int_arg("officer_id"),
            limit=limit,
            offset=_int_arg("offset", minimum=0) or 0,
        )
        return jsonify({"orders": [o.to_dict(include_lines=False) for o in orders]}), 200

    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list orders")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("/summary")
@require_auth
def order_summary_route():
    """Order counts per status, optionally for one store."""
    try:
        counts = order_service.order_counts_by_status(g.actor, store_id=_int_arg("store_id"))
        return jsonify({"counts": counts}), 200

    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code


@orders_bp.get("/<int:order_id>")
@require_auth
def get_order_route(order_id: int):
    try:
        order = order_service.get_visible_order(order_id, g.actor)
        return jsonify({"order": order.to_dict()}), 200

    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
