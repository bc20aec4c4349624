# Overview: Flask API routes for reports; read-only, parses filters and returns JSON responses.

# backend/caja/routes/reports.py
"""Consolidated per-shift cash report and order timing report (admin, cajero)."""

from flask import Blueprint, request, current_app

from ..services import reporting_service
from ..decorators import require_auth, require_role
from ..responses import BUSINESS_ERRORS, ok, fail, error_response


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/cash")
@require_auth
@require_role("admin", "cajero")
def cash_report_route():
    """
    ?from=YYYY-MM-DD&to=YYYY-MM-DD&shift=N

    items: [{cash, sales, movements, invoices}] per session, oldest first.
    """
    try:
        items = reporting_service.cash_report(
            request.args.get("from"),
            request.args.get("to"),
            request.args.get("shift"),
        )
        return ok(items=items)
    except BUSINESS_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to build cash report")
        return fail("REPORT_ERROR", 500)


@reports_bp.get("/orders")
@require_auth
@require_role("admin", "cajero")
def orders_report_route():
    """?from&to&status=open|closed&prep_status=unstarted|in_progress|done"""
    try:
        items = reporting_service.orders_report(
            request.args.get("from"),
            request.args.get("to"),
            request.args.get("status"),
            request.args.get("prep_status"),
        )
        return ok(items=items)
    except BUSINESS_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to build orders report")
        return fail("REPORT_ERROR", 500)
