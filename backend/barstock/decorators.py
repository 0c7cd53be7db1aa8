# Overview: Request decorators that resolve the acting user and enforce the manager role.

from functools import wraps
from flask import request, jsonify, g, current_app

from .models.auth import ROLE_COLUMNS, ROLE_MANAGER
from .services.gateway import GatewayError, get_gateway

ACTOR_HEADER = "X-User-Email"


def _is_authenticated() -> bool:
    return hasattr(g, "actor") and hasattr(g, "profile")


def require_actor(f):
    """
    Resolve the acting user from the X-User-Email header.

    Authentication happens upstream; this only maps the identity to a role.
    Sets the following Flask g attributes:
    - g.actor: the user's email (used as actor id in the action log)
    - g.profile: the user_profiles row as a dict
    - g.columns: stock columns the user may edit

    Returns 401 if the header is missing or the email has no profile.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        email = (request.headers.get(ACTOR_HEADER) or "").strip().lower()
        if not email:
            return jsonify({"error": "Authentication required"}), 401

        try:
            profiles = get_gateway().query("user_profiles", filters={"email": email}, limit=1)
        except GatewayError:
            current_app.logger.exception("Failed to resolve user profile")
            return jsonify({"error": "Internal server error"}), 500

        if not profiles:
            return jsonify({"error": "Unknown user"}), 401

        g.actor = email
        g.profile = profiles[0]
        g.columns = ROLE_COLUMNS.get(g.profile["role"], ())
        return f(*args, **kwargs)

    return decorated_function


def require_manager(f):
    """Require the manager role. Must be stacked under @require_actor."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not _is_authenticated():
            return jsonify({"error": "Authentication required"}), 401
        if g.profile["role"] != ROLE_MANAGER:
            return jsonify({"error": "Permission denied", "required_role": ROLE_MANAGER}), 403
        return f(*args, **kwargs)

    return decorated_function
