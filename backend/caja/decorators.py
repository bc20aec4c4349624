# Overview: Request and role decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .services import session_service


def _is_authenticated() -> bool:
    return hasattr(g, 'current_user')


def require_auth(f):
    """
    Require a valid bearer token.

    Sets the following Flask g attributes:
    - g.current_user: The authenticated User object
    - g.session_token: The live SessionToken row

    Returns 401 NO_TOKEN without an Authorization header and 401 BAD_TOKEN
    for unknown, expired, idle or revoked tokens.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get("Authorization")

        if not auth_header or not auth_header.startswith("Bearer "):
            return jsonify({"ok": False, "error": "NO_TOKEN"}), 401

        token = auth_header.split(" ", 1)[1].strip()
        session = session_service.validate_session(token) if token else None

        if not session:
            return jsonify({"ok": False, "error": "BAD_TOKEN"}), 401

        g.current_user = session.user
        g.session_token = session

        return f(*args, **kwargs)

    return decorated_function


def require_role(*roles: str):
    """
    Restrict a route to users holding one of roles.

    Must be applied after @require_auth.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return jsonify({"ok": False, "error": "NO_AUTH"}), 401

            if g.current_user.role not in roles:
                return jsonify({
                    "ok": False,
                    "error": "FORBIDDEN_ROLE",
                    "required_roles": list(roles),
                }), 403

            return f(*args, **kwargs)

        return decorated_function

    return decorator
