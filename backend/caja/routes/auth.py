# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/caja/routes/auth.py
"""
Authentication API routes

- POST /login exchanges email + password for an opaque bearer token
- POST /logout revokes the presented token
- GET /me returns the authenticated user
"""

from flask import Blueprint, request, current_app, g

from ..extensions import db
from ..services import auth_service
from ..services import session_service
from ..decorators import require_auth
from ..responses import ok, fail


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Request body: {"email": "...", "password": "..."}
    """
    try:
        data = request.get_json(silent=True) or {}
        email = data.get("email")
        password = data.get("password")

        if not isinstance(email, str) or not isinstance(password, str) or not email.strip() or not password:
            return fail("MISSING_FIELDS")

        user = auth_service.authenticate(email, password)
        if not user:
            return fail("BAD_CREDENTIALS", 401)

        _, token = session_service.create_session(
            user.id,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )
        current_app.logger.info("User %s logged in", user.id)

        return ok(token=token, user=user.to_dict())

    except Exception:
        db.session.rollback()
        current_app.logger.exception("Login failed")
        return fail("LOGIN_ERROR", 500)


@auth_bp.post("/logout")
@require_auth
def logout_route():
    token = request.headers["Authorization"].split(" ", 1)[1].strip()
    session_service.revoke_session(token)
    return ok()


@auth_bp.get("/me")
@require_auth
def me_route():
    return ok(user=g.current_user.to_dict())
