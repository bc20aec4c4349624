# Overview: Flask API routes for order operations; parses input and returns JSON responses.

# backend/caja/routes/orders.py
"""
Order API Routes

DESIGN:
- Waiters and cashiers take and edit orders
- The kitchen display lists open orders and moves prep_status forward
- Charging an order (checkout) is the only way to close it

SECURITY:
- admin, cajero, mozo: create / edit
- cocina, admin, cajero: kitchen listing and prep transitions
- admin, cajero: charge
"""

from flask import Blueprint, request, g, current_app

from ..extensions import db
from ..services import checkout_service, order_service
from ..decorators import require_auth, require_role
from ..responses import BUSINESS_ERRORS, ok, fail, error_response
from ..validation import from_cents, optional_int


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


@orders_bp.post("")
@orders_bp.post("/")
@require_auth
@require_role("admin", "cajero", "mozo")
def create_order_route():
    """
    Create an order in an open cash session.

    Request body:
    {
        "cash_session_id": 1,
        "items": [{"product_id": 1, "description": "Burger", "quantity": 2,
                   "unit_price": 10, "total": 20}],
        "total": 20  (optional, defaults to the item sum)
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        cash_session_id = optional_int(data.get("cash_session_id"), "INVALID_CASH_SESSION_ID")
        if cash_session_id is None:
            return fail("MISSING_REQUIRED_FIELDS")

        order = order_service.create_order(cash_session_id, data.get("items", []), data.get("total"))
        return ok(201, order_id=order.id, order_number=order.order_number)

    except BUSINESS_ERRORS as e:
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create order")
        return fail("ORDER_CREATE_ERROR", 500)


@orders_bp.get("/kitchen")
@require_auth
@require_role("cocina", "admin", "cajero")
def kitchen_route():
    """Open orders of the current session, oldest first; ?prep_status= filters."""
    try:
        return ok(items=order_service.kitchen_orders(request.args.get("prep_status")))
    except BUSINESS_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list kitchen orders")
        return fail("ERROR_LOADING_ORDERS", 500)


@orders_bp.get("/<int:order_id>")
@require_auth
def get_order_route(order_id: int):
    try:
        order = order_service.get_order(order_id)
        return ok(order=order.to_dict(), items=[item.to_dict() for item in order.items])
    except BUSINESS_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to load order %s", order_id)
        return fail("ERROR_LOADING_ORDERS", 500)


@orders_bp.patch("/<int:order_id>")
@require_auth
@require_role("admin", "cajero", "mozo")
def update_order_route(order_id: int):
    """
    Edit an open order.

    Request body: any of {"status", "prep_status", "total", "items"}.
    "items" replaces the whole item set.
    """
    try:
        data = request.get_json(silent=True) or {}
        order_service.update_order(
            order_id,
            status=data.get("status"),
            prep_status=data.get("prep_status"),
            total=data.get("total"),
            items=data.get("items"),
        )
        return ok()

    except BUSINESS_ERRORS as e:
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update order %s", order_id)
        return fail("ORDER_UPDATE_ERROR", 500)


@orders_bp.patch("/<int:order_id>/prep")
@require_auth
@require_role("cocina", "admin", "cajero")
def update_prep_route(order_id: int):
    """
    Kitchen transition.

    Request body: {"prep_status": "in_progress" | "done"}
    ("en_preparacion" / "preparado" accepted)
    """
    try:
        data = request.get_json(silent=True) or {}
        order_service.update_prep_status(order_id, data.get("prep_status"))
        return ok()

    except BUSINESS_ERRORS as e:
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update prep status of order %s", order_id)
        return fail("ORDER_UPDATE_ERROR", 500)


@orders_bp.post("/<int:order_id>/charge")
@require_auth
@require_role("admin", "cajero")
def charge_order_route(order_id: int):
    """
    Charge and close an order.

    Request body: {"payment_method": "efectivo"}  (optional)
    """
    try:
        data = request.get_json(silent=True) or {}
        result = checkout_service.charge_order(order_id, data.get("payment_method"), g.current_user.id)
        current_app.logger.info(
            "Order %s charged as sale %s by user %s",
            order_id, result["sale_id"], g.current_user.id,
        )
        return ok(sale_id=result["sale_id"], total=from_cents(result["total_cents"]))

    except BUSINESS_ERRORS as e:
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to charge order %s", order_id)
        return fail("CHARGE_ERROR", 500)
