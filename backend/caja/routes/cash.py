# Overview: Flask API routes for cash session operations; parses input and returns JSON responses.

# backend/caja/routes/cash.py
"""
Cash Session API Routes

WHY: The drawer shift ("caja") is opened, funded, counted and closed from
the cashier screen. Manual inflows and outflows are recorded against the
current session.

DESIGN:
- Shift lifecycle: open -> close (immutable once closed)
- At most one open session; a second open returns CASH_ALREADY_OPEN
- Movements are append-only

SECURITY:
- admin, cajero for every mutation and the movement ledger
- mozo may also list a session's orders
"""

from flask import Blueprint, request, g, current_app

from ..extensions import db
from ..services import cash_service, order_service
from ..decorators import require_auth, require_role
from ..responses import BUSINESS_ERRORS, ok, fail, error_response
from ..validation import from_cents, optional_int


cash_bp = Blueprint("cash", __name__, url_prefix="/api/cash")


@cash_bp.get("/current")
@require_auth
def current_session_route():
    """Current open session and its expected balance, or nulls."""
    try:
        session = cash_service.get_current_session()
        if not session:
            return ok(session=None, balance=None)
        return ok(session=session.to_dict(), balance=cash_service.session_balance(session))
    except Exception:
        current_app.logger.exception("Failed to load current cash session")
        return fail("ERROR_LOADING_CASH", 500)


@cash_bp.post("/open")
@require_auth
@require_role("admin", "cajero")
def open_session_route():
    try:
        session = cash_service.open_session(g.current_user.id)
        current_app.logger.info(
            "Cash session %s opened (shift %s) by user %s",
            session.id, session.shift_number, g.current_user.id,
        )
        return ok(201, id=session.id, shift_number=session.shift_number)

    except BUSINESS_ERRORS as e:
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to open cash session")
        return fail("CASH_OPEN_ERROR", 500)


@cash_bp.post("/opening/<int:session_id>")
@require_auth
@require_role("admin", "cajero")
def opening_amount_route(session_id: int):
    """
    Declare the starting float.

    Request body: {"amount": 100}
    """
    try:
        data = request.get_json(silent=True) or {}
        cash_service.record_opening_amount(session_id, data.get("amount"))
        return ok()

    except BUSINESS_ERRORS as e:
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to record opening amount")
        return fail("CASH_OPENING_ERROR", 500)


@cash_bp.post("/close/<int:session_id>")
@require_auth
@require_role("admin", "cajero")
def close_session_route(session_id: int):
    """
    Close the session with the counted cash.

    Request body: {"closing_amount": 150}
    """
    try:
        data = request.get_json(silent=True) or {}
        session = cash_service.close_session(session_id, data.get("closing_amount"), g.current_user.id)
        current_app.logger.info("Cash session %s closed by user %s", session.id, g.current_user.id)
        return ok(id=session.id, difference=from_cents(session.difference_cents))

    except BUSINESS_ERRORS as e:
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to close cash session")
        return fail("CASH_CLOSE_ERROR", 500)


@cash_bp.post("/movement/manual")
@require_auth
@require_role("admin", "cajero")
def manual_movement_route():
    """
    Record a manual inflow or outflow on the current session.

    Request body:
    {
        "type": "ingreso" | "egreso",
        "amount": 50,
        "reference": "Pago proveedor",
        "supplier_id": 3  (optional)
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        movement = cash_service.record_manual_movement(
            movement_type=data.get("type"),
            amount=data.get("amount"),
            reference=data.get("reference"),
            user_id=g.current_user.id,
            supplier_id=optional_int(data.get("supplier_id"), "INVALID_SUPPLIER_ID"),
        )
        return ok(201, movement=movement.to_dict())

    except BUSINESS_ERRORS as e:
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to record cash movement")
        return fail("MOVEMENT_ERROR", 500)


@cash_bp.get("/movements/<int:session_id>")
@require_auth
@require_role("admin", "cajero")
def list_movements_route(session_id: int):
    try:
        return ok(items=cash_service.list_movements(session_id))
    except BUSINESS_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list movements of session %s", session_id)
        return fail("ERROR_LOADING_CASH", 500)


@cash_bp.get("/<int:session_id>/orders")
@require_auth
@require_role("admin", "cajero", "mozo")
def session_orders_route(session_id: int):
    """Orders of a session; ?status=active|activos|open|closed."""
    try:
        orders = order_service.list_orders(session_id, request.args.get("status"))
        return ok(items=[order.to_dict() for order in orders])
    except BUSINESS_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list orders of session %s", session_id)
        return fail("ERROR_LOADING_ORDERS", 500)
