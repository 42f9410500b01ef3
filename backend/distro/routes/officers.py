# backend/distro/routes/officers.py

from flask import Blueprint, jsonify, g, current_app

from ..errors import DomainError
from ..services import balance_service
from ..decorators import require_auth


officers_bp = Blueprint("officers", __name__, url_prefix="/api/officers")


@officers_bp.get("/<int:officer_id>/balance")
@require_auth
def officer_balance_route(officer_id: int):
    """
    Balance rolled up across every store assigned to an officer.

    Officers may read their own rollup; admins and stock managers any.
    """
    try:
        result = balance_service.get_officer_balance(officer_id, g.actor)
        return jsonify(result), 200

    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to compute officer balance")
        return jsonify({"error": "Internal server error"}), 500
