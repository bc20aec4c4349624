# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

# backend/caja/routes/sales.py
"""Direct sales and sales listings (admin, cajero)."""

from flask import Blueprint, request, g, current_app

from ..extensions import db
from ..services import checkout_service, reporting_service
from ..decorators import require_auth, require_role
from ..responses import BUSINESS_ERRORS, ok, fail, error_response
from ..validation import from_cents


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("")
@sales_bp.post("/")
@require_auth
@require_role("admin", "cajero")
def create_sale_route():
    """
    Walk-up sale against the current cash session.

    Request body:
    {
        "items": [{"product_id": 1, "qty": 2, "price": 10, "manual": false}],
        "payment_method": "efectivo"  (optional)
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        result = checkout_service.direct_sale(
            data.get("items"),
            data.get("payment_method"),
            g.current_user.id,
        )
        current_app.logger.info("Sale %s recorded by user %s", result["sale_id"], g.current_user.id)
        return ok(
            201,
            sale_id=result["sale_id"],
            total=from_cents(result["total_cents"]),
            cash_session_id=result["cash_session_id"],
            shift_number=result["shift_number"],
        )

    except BUSINESS_ERRORS as e:
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to record sale")
        return fail("SALE_ERROR", 500)


@sales_bp.get("")
@sales_bp.get("/")
@require_auth
@require_role("admin", "cajero")
def list_sales_route():
    """?from=YYYY-MM-DD&to=YYYY-MM-DD&shift=N"""
    try:
        items = reporting_service.list_sales(
            request.args.get("from"),
            request.args.get("to"),
            request.args.get("shift"),
        )
        return ok(items=items)
    except BUSINESS_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list sales")
        return fail("ERROR_LOADING_SALES", 500)


@sales_bp.get("/summary")
@require_auth
@require_role("admin", "cajero")
def sales_summary_route():
    try:
        summary = reporting_service.sales_summary(
            request.args.get("from"),
            request.args.get("to"),
            request.args.get("shift"),
        )
        return ok(**summary)
    except BUSINESS_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to summarize sales")
        return fail("ERROR_LOADING_SALES", 500)


@sales_bp.get("/<int:sale_id>")
@require_auth
@require_role("admin", "cajero")
def get_sale_route(sale_id: int):
    try:
        sale = checkout_service.get_sale(sale_id)
        return ok(sale=sale.to_dict(), items=[item.to_dict() for item in sale.items])
    except BUSINESS_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to load sale %s", sale_id)
        return fail("ERROR_LOADING_SALES", 500)
