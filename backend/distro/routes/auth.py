# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/distro/routes/auth.py
"""
Authentication API routes

Accounts are created from the CLI (flask users create); there is no
self-registration endpoint.
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import auth_service
from ..services import session_service
from ..decorators import require_auth
from ..time_utils import to_utc_z


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """
    Authenticate a user and create a session token.

    Request body:
    {
        "email": "officer@example.com",
        "password": "secret"
    }

    Returns user info and a bearer token. Send it as
    "Authorization: Bearer <token>" on protected routes.
    """
    try:
        data = request.get_json(silent=True) or {}
        email = data.get("email")
        password = data.get("password")

        if not email or not password:
            return jsonify({"error": "email and password required"}), 400

        user = auth_service.authenticate(email, password)
        if user is None:
            current_app.logger.info("failed login for %s", email)
            return jsonify({"error": "Invalid credentials"}), 401

        session, token = session_service.create_session(user.id)
        current_app.logger.info("user %s logged in", user.id)

        return jsonify({
            "user": user.to_dict(),
            "token": token,
            "expires_at": to_utc_z(session.expires_at),
        }), 200

    except Exception:
        current_app.logger.exception("Login failed")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
@require_auth
def logout_route():
    session_service.revoke_session(g.token)
    return jsonify({"message": "Logged out"}), 200


@auth_bp.get("/me")
@require_auth
def me_route():
    return jsonify({"user": g.current_user.to_dict()}), 200
