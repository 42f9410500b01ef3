# Overview: Flask API routes for stores: payments, dues and derived balances.

# backend/distro/routes/stores.py
"""
Store ledger API routes

Payments and dues are append-only. Balances are never stored; every
GET .../balance recomputes from fulfilled orders, dues and payments.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import DomainError
from ..services import balance_service
from ..services import ledger_service
from ..services.store_service import visible_store_ids
from ..models import Store
from ..extensions import db
from ..validation import optional_datetime, optional_str, require_amount_cents
from ..decorators import require_auth, require_permission


stores_bp = Blueprint("stores", __name__, url_prefix="/api/stores")


@stores_bp.get("/", strict_slashes=False)
@require_auth
def list_stores_route():
    """Stores visible to the caller (an officer sees only their own)."""
    store_ids = visible_store_ids(g.actor)
    stores = (
        db.session.query(Store).filter(Store.id.in_(store_ids)).order_by(Store.id).all()
        if store_ids else []
    )
    return jsonify({"stores": [s.to_dict() for s in stores]}), 200


# =============================================================================
# PAYMENTS
# =============================================================================

@stores_bp.post("/<int:store_id>/payments")
@require_auth
@require_permission("RECORD_PAYMENT")
def record_payment_route(store_id: int):
    """
    Record a payment received from a store.

    Request body:
    {
        "amount_cents": 50000,
        "method": "cash",                  (optional: cash | credit | bank)
        "notes": "collected at counter",   (optional)
        "date": "2026-01-15T10:00:00Z"     (optional, defaults to now)
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        payment = ledger_service.record_payment(
            store_id,
            require_amount_cents(data),
            g.actor,
            method=data.get("method") or ledger_service.PAYMENT_METHOD_CASH,
            notes=optional_str(data, "notes", max_length=2000),
            date=optional_datetime(data, "date"),
        )
        return jsonify({"payment": payment.to_dict()}), 201

    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to record payment")
        return jsonify({"error": "Internal server error"}), 500


@stores_bp.get("/<int:store_id>/payments")
@require_auth
def list_payments_route(store_id: int):
    try:
        payments = ledger_service.list_payments(store_id, g.actor)
        return jsonify({"payments": [p.to_dict() for p in payments]}), 200

    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code


# =============================================================================
# DUES
# =============================================================================

@stores_bp.post("/<int:store_id>/dues")
@require_auth
@require_permission("RECORD_DUE")
def record_due_route(store_id: int):
    """
    Record a manual due (an obligation not tied to any order).

    Request body:
    {
        "amount_cents": 20000,
        "description": "opening balance",  (optional)
        "due_date": "2026-02-01",          (optional)
        "date": "2026-01-15T10:00:00Z"     (optional, defaults to now)
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        due = ledger_service.record_due(
            store_id,
            require_amount_cents(data),
            g.actor,
            description=optional_str(data, "description", max_length=2000),
            due_date=optional_datetime(data, "due_date"),
            date=optional_datetime(data, "date"),
        )
        return jsonify({"due": due.to_dict()}), 201

    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to record due")
        return jsonify({"error": "Internal server error"}), 500


@stores_bp.get("/<int:store_id>/dues")
@require_auth
def list_dues_route(store_id: int):
    try:
        dues = ledger_service.list_dues(store_id, g.actor)
        return jsonify({"dues": [d.to_dict() for d in dues]}), 200

    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code


# =============================================================================
# BALANCES
# =============================================================================

@stores_bp.get("/<int:store_id>/balance")
@require_auth
def store_balance_route(store_id: int):
    """
    Derived balance for one store.

    Query params:
        history: "0" to omit due/payment history (default included)
    """
    try:
        include_history = request.args.get("history", "1") != "0"
        balance = balance_service.get_store_balance(store_id, g.actor)
        return jsonify({
            "store_id": store_id,
            "balance": balance.to_dict(include_history=include_history),
        }), 200

    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to compute store balance")
        return jsonify({"error": "Internal server error"}), 500


@stores_bp.get("/balances")
@require_auth
def list_balances_route():
    """Totals (no history) for every store visible to the caller."""
    try:
        rows = balance_service.list_store_balances(g.actor)
        return jsonify({
            "balances": [
                {"store": store.to_dict(), **balance.to_dict(include_history=False)}
                for store, balance in rows
            ]
        }), 200

    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list store balances")
        return jsonify({"error": "Internal server error"}), 500
