# Overview: Service-layer operations for invoices; type A/B comprobantes issued against sales.

"""
Invoice Service

WHY: A customer may ask for a comprobante after paying. Invoices are
issued post hoc against an existing sale and never change the sale.

RULES:
- Type A: customer required, and it must be Responsable Inscripto (RI);
  the sale total is tax-inclusive and split 79/21 into subtotal and IVA
- Type B: subtotal = total, IVA = 0
- subtotal + iva == total exactly (rounding drift is folded into IVA)
- Numbers are consecutive per (punto_venta, tipo_comprobante), never reused
- Customer data is snapshotted onto the invoice at issuance
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal, ROUND_HALF_UP

from flask import current_app
from sqlalchemy import func
from sqlalchemy.orm import selectinload

from ..extensions import db
from ..models import Customer, Invoice, Sale, SaleItem
from ..models.invoices import INVOICE_TYPES
from ..time_utils import local_day_end_utc, local_day_start_utc, to_utc_z, utcnow
from ..validation import ValidationError, from_cents, optional_int
from .concurrency import run_with_retry, serialize_writes
from .errors import ServiceError
from .sequence_service import next_sequence_value


IVA_RATE = Decimal("0.21")
NET_RATE = Decimal("0.79")

CONDICION_VENTA = "Contado"
CONSUMIDOR_FINAL = "Consumidor Final"
RESPONSABLE_INSCRIPTO = "RI"

MAX_PUNTO_VENTA = 9999


class InvoiceError(ServiceError):
    """Raised for invoice issuance and lookup errors."""
    pass


def split_tax(total_cents: int, tipo_comprobante: str) -> tuple[int, int]:
    """
    Split a tax-inclusive total into (subtotal_cents, iva_cents).

    A: subtotal = round(total * 0.79), iva = round(total * 0.21), then the
    residue total - (subtotal + iva) is added to iva. B: (total, 0).
    """
    if tipo_comprobante != "A":
        return total_cents, 0

    total = Decimal(total_cents)
    subtotal = int((total * NET_RATE).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    iva = int((total * IVA_RATE).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    iva += total_cents - (subtotal + iva)
    return subtotal, iva


def _customer_snapshot(customer: Customer | None) -> dict:
    if customer is None:
        return {
            "cliente_razon_social": CONSUMIDOR_FINAL,
            "cliente_documento": None,
            "cliente_direccion": None,
            "cliente_condicion_iva": "CF",
        }
    return {
        "cliente_razon_social": customer.display_name or CONSUMIDOR_FINAL,
        "cliente_documento": customer.numero_documento,
        "cliente_direccion": customer.direccion,
        "cliente_condicion_iva": customer.condicion_iva or "CF",
    }


def invoice_payload(invoice: Invoice) -> dict:
    """Invoice dict with its sale's line items embedded."""
    d = invoice.to_dict()
    sale = invoice.sale
    d["sale_total"] = from_cents(sale.total_cents) if sale else None
    d["sale_date"] = to_utc_z(sale.created_at) if sale else None
    d["items"] = [item.to_dict() for item in sale.items] if sale else []
    return d


# =============================================================================
# ISSUE
# =============================================================================

def issue_invoice(
    sale_id,
    tipo_comprobante,
    punto_venta,
    created_by: int,
    customer_id=None,
) -> Invoice:
    """
    Issue a type A or B invoice for a sale.

    Every check runs before anything is written.

    Raises:
        InvoiceError: MISSING_REQUIRED_FIELDS, INVALID_INVOICE_TYPE,
            INVALID_PUNTO_VENTA, INVOICE_A_REQUIRES_CUSTOMER,
            SALE_NOT_FOUND (404), CUSTOMER_NOT_FOUND (400),
            INVOICE_A_REQUIRES_RI_CUSTOMER
    """
    if not sale_id or not tipo_comprobante:
        raise InvoiceError("MISSING_REQUIRED_FIELDS")
    if tipo_comprobante not in INVOICE_TYPES:
        raise InvoiceError("INVALID_INVOICE_TYPE", {"allowed": list(INVOICE_TYPES)})

    try:
        sale_id = optional_int(sale_id, "INVALID_SALE_ID")
        customer_id = optional_int(customer_id, "INVALID_CUSTOMER_ID")
        if punto_venta is None or punto_venta == "":
            punto_venta = current_app.config.get("CAJA_DEFAULT_PUNTO_VENTA", 1)
        punto_venta = optional_int(punto_venta, "INVALID_PUNTO_VENTA")
    except ValidationError as exc:
        raise InvoiceError(exc.code)
    if not punto_venta or punto_venta > MAX_PUNTO_VENTA:
        raise InvoiceError("INVALID_PUNTO_VENTA")

    if tipo_comprobante == "A" and not customer_id:
        raise InvoiceError("INVOICE_A_REQUIRES_CUSTOMER")

    def _op():
        serialize_writes()

        sale = db.session.get(Sale, sale_id)
        if not sale:
            raise InvoiceError("SALE_NOT_FOUND")

        customer = None
        if customer_id:
            customer = db.session.get(Customer, customer_id)
            if not customer:
                raise InvoiceError("CUSTOMER_NOT_FOUND", status_code=400)
            if tipo_comprobante == "A" and customer.condicion_iva != RESPONSABLE_INSCRIPTO:
                raise InvoiceError("INVOICE_A_REQUIRES_RI_CUSTOMER")

        subtotal_cents, iva_cents = split_tax(sale.total_cents, tipo_comprobante)

        numero = next_sequence_value(
            "invoice",
            f"{punto_venta}-{tipo_comprobante}",
            seed=lambda: db.session.query(func.max(Invoice.numero_comprobante))
            .filter(
                Invoice.punto_venta == punto_venta,
                Invoice.tipo_comprobante == tipo_comprobante,
            )
            .scalar(),
        )

        invoice = Invoice(
            sale_id=sale.id,
            customer_id=customer.id if customer else None,
            tipo_comprobante=tipo_comprobante,
            punto_venta=punto_venta,
            numero_comprobante=numero,
            subtotal_cents=subtotal_cents,
            iva_cents=iva_cents,
            total_cents=sale.total_cents,
            condicion_venta=CONDICION_VENTA,
            created_by=created_by,
            fecha_emision=utcnow(),
            **_customer_snapshot(customer),
        )
        db.session.add(invoice)
        db.session.commit()
        return invoice

    return run_with_retry(_op)


# =============================================================================
# LOOKUP
# =============================================================================

def _invoice_query():
    return db.session.query(Invoice).options(
        selectinload(Invoice.sale).selectinload(Sale.items).selectinload(SaleItem.product)
    )


def get_invoice(invoice_id: int) -> Invoice:
    invoice = _invoice_query().filter(Invoice.id == invoice_id).first()
    if not invoice:
        raise InvoiceError("INVOICE_NOT_FOUND")
    return invoice


def get_invoice_for_sale(sale_id: int) -> Invoice:
    """Latest invoice issued for a sale."""
    invoice = (
        _invoice_query()
        .filter(Invoice.sale_id == sale_id)
        .order_by(Invoice.fecha_emision.desc(), Invoice.id.desc())
        .first()
    )
    if not invoice:
        raise InvoiceError("INVOICE_NOT_FOUND")
    return invoice


def list_invoices(
    date_from: date | None = None,
    date_to: date | None = None,
    tipo: str | None = None,
) -> list[Invoice]:
    """Invoices newest first, filtered by local issue date and type."""
    query = db.session.query(Invoice)
    if date_from:
        query = query.filter(Invoice.fecha_emision >= local_day_start_utc(date_from))
    if date_to:
        query = query.filter(Invoice.fecha_emision <= local_day_end_utc(date_to))
    if tipo:
        if tipo not in INVOICE_TYPES:
            raise InvoiceError("INVALID_INVOICE_TYPE", {"allowed": list(INVOICE_TYPES)})
        query = query.filter(Invoice.tipo_comprobante == tipo)
    return query.order_by(Invoice.fecha_emision.desc(), Invoice.id.desc()).all()
