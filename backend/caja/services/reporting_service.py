# Overview: Service-layer operations for reporting; read-only projections over sessions, sales and orders.

from __future__ import annotations

from datetime import date

from sqlalchemy import func

from ..extensions import db
from ..models import CashMovement, CashSession, Invoice, Order, Sale
from ..models.orders import ORDER_OPEN, ORDER_CLOSED
from ..time_utils import local_day_end_utc, local_day_start_utc, parse_iso_date, utcnow
from ..validation import ValidationError, from_cents, positive_int
from .errors import ServiceError
from .order_service import normalize_prep_status, order_timing


CONSUMIDOR_FINAL = "Consumidor Final"


class ReportError(ServiceError):
    """Raised when report filters are invalid."""
    pass


def parse_date_filter(value: str | None) -> date | None:
    try:
        return parse_iso_date(value)
    except (TypeError, ValueError):
        raise ReportError("INVALID_DATE", {"value": value})


def parse_shift_filter(value) -> int | None:
    if value is None or value == "":
        return None
    try:
        return positive_int(value, "INVALID_SHIFT")
    except ValidationError as exc:
        raise ReportError(exc.code, {"value": value})


def _parse_filters(date_from, date_to, shift) -> tuple[date | None, date | None, int | None]:
    start = parse_date_filter(date_from)
    end = parse_date_filter(date_to)
    if start and end and start > end:
        raise ReportError("INVALID_DATE", {"from": date_from, "to": date_to})
    return start, end, parse_shift_filter(shift)


def _filter_created(query, column, start: date | None, end: date | None):
    if start:
        query = query.filter(column >= local_day_start_utc(start))
    if end:
        query = query.filter(column <= local_day_end_utc(end))
    return query


def _customer_names(sale_ids: list[int]) -> dict[int, str]:
    """sale_id -> customer name on its latest invoice."""
    if not sale_ids:
        return {}
    rows = (
        db.session.query(Invoice.sale_id, Invoice.cliente_razon_social)
        .filter(Invoice.sale_id.in_(sale_ids))
        .order_by(Invoice.id.asc())
        .all()
    )
    return {sale_id: name for sale_id, name in rows}


def _sale_rows(sales: list[Sale]) -> list[dict]:
    names = _customer_names([s.id for s in sales])
    result = []
    for sale in sales:
        d = sale.to_dict()
        d["customer_name"] = names.get(sale.id) or CONSUMIDOR_FINAL
        result.append(d)
    return result


# =============================================================================
# CASH REPORT
# =============================================================================

def cash_report(date_from: str | None = None, date_to: str | None = None, shift=None) -> list[dict]:
    """
    Per-session consolidated report, oldest session first.

    Sessions are selected by their shift_date (server-local day) and/or
    shift number. Each entry: {cash, sales, movements, invoices}.
    """
    start, end, shift_number = _parse_filters(date_from, date_to, shift)

    query = db.session.query(CashSession)
    if start:
        query = query.filter(CashSession.shift_date >= start)
    if end:
        query = query.filter(CashSession.shift_date <= end)
    if shift_number:
        query = query.filter(CashSession.shift_number == shift_number)
    sessions = query.order_by(CashSession.opened_at.asc(), CashSession.id.asc()).all()
    if not sessions:
        return []

    session_ids = [s.id for s in sessions]

    sales = (
        db.session.query(Sale)
        .filter(Sale.cash_session_id.in_(session_ids))
        .order_by(Sale.created_at.asc(), Sale.id.asc())
        .all()
    )
    movements = (
        db.session.query(CashMovement)
        .filter(CashMovement.session_id.in_(session_ids))
        .order_by(CashMovement.created_at.asc(), CashMovement.id.asc())
        .all()
    )
    invoices = (
        db.session.query(Invoice, Sale.cash_session_id)
        .join(Sale, Sale.id == Invoice.sale_id)
        .filter(Sale.cash_session_id.in_(session_ids))
        .order_by(Invoice.fecha_emision.asc(), Invoice.id.asc())
        .all()
    )

    grouped = {
        s.id: {"cash": s.to_dict(), "sales": [], "movements": [], "invoices": []}
        for s in sessions
    }
    for row in _sale_rows(sales):
        grouped[row["cash_session_id"]]["sales"].append(row)
    for movement in movements:
        grouped[movement.session_id]["movements"].append(movement.to_dict())
    for invoice, cash_session_id in invoices:
        d = invoice.to_dict()
        d["cash_session_id"] = cash_session_id
        d["customer_name"] = invoice.cliente_razon_social or CONSUMIDOR_FINAL
        grouped[cash_session_id]["invoices"].append(d)

    return [grouped[sid] for sid in session_ids]


# =============================================================================
# SALES
# =============================================================================

def _sales_query(start, end, shift_number):
    query = _filter_created(db.session.query(Sale), Sale.created_at, start, end)
    if shift_number:
        query = query.filter(Sale.shift_number == shift_number)
    return query


def list_sales(date_from: str | None = None, date_to: str | None = None, shift=None) -> list[dict]:
    """Sales newest first with user_name and customer_name."""
    start, end, shift_number = _parse_filters(date_from, date_to, shift)
    sales = _sales_query(start, end, shift_number).order_by(Sale.created_at.desc(), Sale.id.desc()).all()
    return _sale_rows(sales)


def sales_summary(date_from: str | None = None, date_to: str | None = None, shift=None) -> dict:
    """
    Totals over the filtered sales.

    ventas: count, total: sum, cant_<method>: count per payment method
    (efectivo and qr are always present).
    """
    start, end, shift_number = _parse_filters(date_from, date_to, shift)
    base = _sales_query(start, end, shift_number)

    ventas, total_cents = base.with_entities(
        func.count(Sale.id),
        func.coalesce(func.sum(Sale.total_cents), 0),
    ).one()

    by_method = dict(
        base.with_entities(Sale.payment_method, func.count(Sale.id))
        .group_by(Sale.payment_method)
        .all()
    )

    summary = {
        "ventas": ventas,
        "total": from_cents(total_cents),
        "cant_efectivo": by_method.pop("efectivo", 0),
        "cant_qr": by_method.pop("qr", 0),
    }
    for method, count in sorted(by_method.items()):
        summary[f"cant_{method}"] = count
    return summary


# =============================================================================
# ORDERS
# =============================================================================

def orders_report(
    date_from: str | None = None,
    date_to: str | None = None,
    status: str | None = None,
    prep_status: str | None = None,
) -> list[dict]:
    """Orders newest first with shift_number and timing metrics."""
    start, end, _ = _parse_filters(date_from, date_to, None)

    query = db.session.query(Order, CashSession.shift_number).outerjoin(
        CashSession, CashSession.id == Order.cash_session_id
    )
    query = _filter_created(query, Order.created_at, start, end)
    if status:
        if status not in (ORDER_OPEN, ORDER_CLOSED):
            raise ReportError("INVALID_ORDER_STATUS")
        query = query.filter(Order.status == status)
    if prep_status:
        target = normalize_prep_status(prep_status)
        if target is None:
            raise ReportError("INVALID_PREP_STATUS")
        query = query.filter(Order.prep_status == target)

    now = utcnow()
    items = []
    for order, shift_number in query.order_by(Order.created_at.desc(), Order.id.desc()).all():
        d = order.to_dict()
        d["shift_number"] = shift_number
        d.update(order_timing(order, now))
        items.append(d)
    return items
