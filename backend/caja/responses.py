# Overview: JSON envelope helpers shared by the API routes.

from flask import jsonify

from .services.errors import ServiceError
from .validation import ValidationError


# Business errors carry a stable code, a status and optional details
BUSINESS_ERRORS = (ServiceError, ValidationError)


def ok(status: int = 200, **payload):
    return jsonify({"ok": True, **payload}), status


def fail(code: str, status: int = 400, **details):
    return jsonify({"ok": False, "error": code, **details}), status


def error_response(exc):
    """Envelope for a ServiceError or ValidationError."""
    return fail(exc.code, exc.status_code, **exc.details)
