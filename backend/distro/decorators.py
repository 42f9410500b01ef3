# Overview: Request decorators for API routes (authentication and role gates).

from functools import wraps
from flask import request, jsonify, g

from .services import session_service
from .permissions import Actor, has_permission


def _is_authenticated() -> bool:
    return hasattr(g, "current_user") and hasattr(g, "actor")


def require_auth(f):
    """
    Require a valid bearer token.

    Sets on Flask g:
    - g.current_user: the authenticated User
    - g.actor: Actor(id, role) handed explicitly to every service call
    - g.token: the raw bearer token (for logout)

    Returns 401 when the header is missing, or the token is invalid,
    expired, revoked, or belongs to an inactive user.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get("Authorization")

        if not auth_header or not auth_header.startswith("Bearer "):
            return jsonify({"error": "Authentication required"}), 401

        token = auth_header.split(" ", 1)[1]
        user = session_service.validate_session(token)

        if user is None:
            return jsonify({"error": "Invalid or expired token"}), 401

        g.current_user = user
        g.actor = Actor.from_user(user)
        g.token = token

        return f(*args, **kwargs)

    return decorated_function


def require_permission(action: str):
    """
    Require the caller's role to allow an action (see permissions.ROLE_PERMISSIONS).

    Services check again; this keeps obviously forbidden calls out of them.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return jsonify({"error": "Authentication required"}), 401

            if not has_permission(g.actor, action):
                return jsonify({
                    "error": "Permission denied",
                    "kind": "UnauthorizedError",
                    "required_permission": action,
                    "role": g.actor.role,
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator
