# backend/caja/routes/system.py
"""Liveness endpoint."""

from flask import Blueprint

from ..responses import ok
from ..time_utils import to_utc_z, utcnow

system_bp = Blueprint("system", __name__, url_prefix="/api")


@system_bp.get("/ping")
def ping_route():
    """Public liveness check; no database access."""
    return ok(ts=to_utc_z(utcnow()))
