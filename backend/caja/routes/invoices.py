# Overview: Flask API routes for invoice operations; parses input and returns JSON responses.

# backend/caja/routes/invoices.py
"""
Invoice API Routes

Type A / B comprobantes issued against completed sales (admin, cajero).
Issued invoices are never edited.
"""

from flask import Blueprint, request, g, current_app

from ..extensions import db
from ..services import invoice_service, reporting_service
from ..decorators import require_auth, require_role
from ..responses import BUSINESS_ERRORS, ok, fail, error_response


invoices_bp = Blueprint("invoices", __name__, url_prefix="/api/invoices")


@invoices_bp.post("")
@invoices_bp.post("/")
@require_auth
@require_role("admin", "cajero")
def create_invoice_route():
    """
    Issue an invoice.

    Request body:
    {
        "sale_id": 12,
        "tipo_comprobante": "A" | "B",
        "customer_id": 4,  (required for A)
        "punto_venta": 1   (optional, CAJA_DEFAULT_PUNTO_VENTA)
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        invoice = invoice_service.issue_invoice(
            sale_id=data.get("sale_id"),
            tipo_comprobante=data.get("tipo_comprobante"),
            punto_venta=data.get("punto_venta"),
            created_by=g.current_user.id,
            customer_id=data.get("customer_id"),
        )
        current_app.logger.info(
            "Invoice %s (%s %s) issued for sale %s",
            invoice.id, invoice.tipo_comprobante, invoice.numero_formateado, invoice.sale_id,
        )
        return ok(201, invoice=invoice_service.invoice_payload(invoice))

    except BUSINESS_ERRORS as e:
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to issue invoice")
        return fail("ERROR_CREATING_INVOICE", 500)


@invoices_bp.get("")
@invoices_bp.get("/")
@require_auth
@require_role("admin", "cajero")
def list_invoices_route():
    """?from=YYYY-MM-DD&to=YYYY-MM-DD&tipo=A|B"""
    try:
        invoices = invoice_service.list_invoices(
            reporting_service.parse_date_filter(request.args.get("from")),
            reporting_service.parse_date_filter(request.args.get("to")),
            request.args.get("tipo") or None,
        )
        return ok(items=[invoice.to_dict() for invoice in invoices])
    except BUSINESS_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list invoices")
        return fail("ERROR_LOADING_INVOICE", 500)


@invoices_bp.get("/<int:invoice_id>")
@require_auth
@require_role("admin", "cajero")
def get_invoice_route(invoice_id: int):
    try:
        invoice = invoice_service.get_invoice(invoice_id)
        return ok(invoice=invoice_service.invoice_payload(invoice))
    except BUSINESS_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to load invoice %s", invoice_id)
        return fail("ERROR_LOADING_INVOICE", 500)


@invoices_bp.get("/sale/<int:sale_id>")
@require_auth
@require_role("admin", "cajero")
def get_sale_invoice_route(sale_id: int):
    try:
        invoice = invoice_service.get_invoice_for_sale(sale_id)
        return ok(invoice=invoice_service.invoice_payload(invoice))
    except BUSINESS_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to load invoice for sale %s", sale_id)
        return fail("ERROR_LOADING_INVOICE", 500)
