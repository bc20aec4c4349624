# Overview: Service-layer operations for cash sessions; drawer lifecycle and manual movements.

"""
Cash Session Service

WHY: Every order and sale belongs to a cash drawer shift ("caja"). The drawer
is the unit of cash accountability: opened, given a starting float, closed
with a count, and the difference recorded.

DESIGN PRINCIPLES:
- At most one open session at a time (checked under lock, backed by the
  unique open_slot column)
- The current session is always a query, never cached in process memory
- shift_number restarts at 1 every server-local calendar day
- Sessions are immutable once closed; there is no reopen
- Cash movements are append-only
"""

from __future__ import annotations

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import CashSession, CashMovement, Invoice, Sale, Supplier
from ..models.cash import (
    SESSION_OPEN,
    SESSION_CLOSED,
    MOVEMENT_INFLOW,
    MOVEMENT_OUTFLOW,
    MOVEMENT_SALE,
)
from ..time_utils import local_today, utcnow
from ..validation import positive_cents, to_cents, ValidationError, from_cents
from .concurrency import lock_for_update, run_with_retry, serialize_writes
from .errors import ServiceError
from .sequence_service import next_sequence_value


MANUAL_MOVEMENT_TYPES = (MOVEMENT_INFLOW, MOVEMENT_OUTFLOW)


class CashSessionError(ServiceError):
    """Raised for cash session operation errors."""
    pass


def open_sessions_query():
    return db.session.query(CashSession).filter_by(status=SESSION_OPEN).order_by(CashSession.id.desc())


def get_current_session() -> CashSession | None:
    """Most recent open session, or None. Side-effect free."""
    return open_sessions_query().first()


def get_session(session_id: int) -> CashSession:
    session = db.session.get(CashSession, session_id)
    if not session:
        raise CashSessionError("CASH_NOT_FOUND")
    return session


# =============================================================================
# LIFECYCLE
# =============================================================================

def open_session(opened_by: int) -> CashSession:
    """
    Open a new cash session with a zero float.

    The float is declared afterwards with record_opening_amount(): the drawer
    is opened before the cash is counted.

    Raises:
        CashSessionError: CASH_ALREADY_OPEN (details carry the open session)
    """
    def _op():
        serialize_writes()

        current = lock_for_update(open_sessions_query()).first()
        if current:
            raise CashSessionError("CASH_ALREADY_OPEN", {"session": current.to_dict()})

        today = local_today()
        shift_number = next_sequence_value(
            "cash_shift",
            today.isoformat(),
            seed=lambda: db.session.query(func.max(CashSession.shift_number))
            .filter(CashSession.shift_date == today)
            .scalar(),
        )

        session = CashSession(
            status=SESSION_OPEN,
            open_slot=1,
            shift_date=today,
            shift_number=shift_number,
            opening_amount_cents=0,
            opened_by=opened_by,
            opened_at=utcnow(),
        )
        db.session.add(session)
        db.session.commit()
        return session

    try:
        return run_with_retry(_op)
    except IntegrityError:
        # A concurrent opener won the open_slot
        current = get_current_session()
        if not current:
            raise
        raise CashSessionError("CASH_ALREADY_OPEN", {"session": current.to_dict()})


def record_opening_amount(session_id: int, amount) -> CashSession:
    """
    Declare the starting float of an open session.

    Raises:
        ValidationError: AMOUNT_REQUIRED unless amount is a positive number
        CashSessionError: CASH_NOT_FOUND, CASH_ALREADY_CLOSED
    """
    amount_cents = positive_cents(amount, "AMOUNT_REQUIRED")

    def _op():
        serialize_writes()
        session = lock_for_update(db.session.query(CashSession).filter_by(id=session_id)).first()
        if not session:
            raise CashSessionError("CASH_NOT_FOUND")
        if not session.is_open:
            raise CashSessionError("CASH_ALREADY_CLOSED")

        session.opening_amount_cents = amount_cents
        db.session.commit()
        return session

    return run_with_retry(_op)


def close_session(session_id: int, closing_amount, closed_by: int) -> CashSession:
    """
    Close a session and record difference = closing - opening.

    IMMUTABLE: Once closed, a session cannot be reopened or modified.

    Raises:
        ValidationError: CLOSING_REQUIRED if closing_amount is missing or negative
        CashSessionError: CASH_NOT_FOUND, CASH_ALREADY_CLOSED
    """
    closing_cents = to_cents(closing_amount, "CLOSING_REQUIRED")
    if closing_cents < 0:
        raise ValidationError("CLOSING_REQUIRED")

    def _op():
        serialize_writes()
        session = lock_for_update(db.session.query(CashSession).filter_by(id=session_id)).first()
        if not session:
            raise CashSessionError("CASH_NOT_FOUND")
        if not session.is_open:
            raise CashSessionError("CASH_ALREADY_CLOSED")

        session.status = SESSION_CLOSED
        session.open_slot = None
        session.closing_amount_cents = closing_cents
        session.difference_cents = closing_cents - session.opening_amount_cents
        session.closed_by = closed_by
        session.closed_at = utcnow()
        db.session.commit()
        return session

    return run_with_retry(_op)


# =============================================================================
# CASH MOVEMENTS
# =============================================================================

def record_manual_movement(
    movement_type: str,
    amount,
    reference: str | None,
    user_id: int,
    supplier_id: int | None = None,
) -> CashMovement:
    """
    Append a manual inflow (ingreso) or outflow (egreso) to the current session.

    venta movements are written only by checkout.

    Raises:
        ValidationError: AMOUNT_REQUIRED
        CashSessionError: INVALID_MOVEMENT_TYPE, NO_CASH_OPEN, SUPPLIER_NOT_FOUND
    """
    if movement_type not in MANUAL_MOVEMENT_TYPES:
        raise CashSessionError("INVALID_MOVEMENT_TYPE", {"allowed": list(MANUAL_MOVEMENT_TYPES)})
    amount_cents = positive_cents(amount, "AMOUNT_REQUIRED")

    def _op():
        serialize_writes()
        session = lock_for_update(open_sessions_query()).first()
        if not session:
            raise CashSessionError("NO_CASH_OPEN")

        if supplier_id is not None and not db.session.get(Supplier, supplier_id):
            raise CashSessionError("SUPPLIER_NOT_FOUND", status_code=400)

        movement = CashMovement(
            session_id=session.id,
            type=movement_type,
            amount_cents=amount_cents,
            reference=(reference or "").strip()[:255],
            user_id=user_id,
            supplier_id=supplier_id,
            created_at=utcnow(),
        )
        db.session.add(movement)
        db.session.commit()
        return movement

    return run_with_retry(_op)


def list_movements(session_id: int) -> list[dict]:
    """
    Movements of a session, newest first.

    venta rows carry customer_name from the sale's invoice, falling back
    to "Consumidor Final".
    """
    get_session(session_id)

    rows = (
        db.session.query(CashMovement, Invoice)
        .outerjoin(Invoice, Invoice.sale_id == CashMovement.sale_id)
        .filter(CashMovement.session_id == session_id)
        .order_by(CashMovement.id.desc(), Invoice.id.desc())
        .all()
    )

    items = []
    seen = set()
    for movement, invoice in rows:
        # A sale with several invoices would repeat its movement
        if movement.id in seen:
            continue
        seen.add(movement.id)
        d = movement.to_dict()
        if movement.type == MOVEMENT_SALE:
            d["customer_name"] = invoice.cliente_razon_social if invoice else "Consumidor Final"
        else:
            d["customer_name"] = None
        items.append(d)
    return items


def session_balance(session: CashSession) -> dict:
    """
    Totals per movement type and the cash expected in the drawer.

    expected_cash = opening + ingresos - egresos + cash (efectivo) sales
    """
    totals = dict(
        db.session.query(CashMovement.type, func.coalesce(func.sum(CashMovement.amount_cents), 0))
        .filter(CashMovement.session_id == session.id)
        .group_by(CashMovement.type)
        .all()
    )
    cash_sales = (
        db.session.query(func.coalesce(func.sum(CashMovement.amount_cents), 0))
        .join(Sale, Sale.id == CashMovement.sale_id)
        .filter(
            CashMovement.session_id == session.id,
            CashMovement.type == MOVEMENT_SALE,
            Sale.payment_method == "efectivo",
        )
        .scalar()
    )

    inflow = totals.get(MOVEMENT_INFLOW, 0)
    outflow = totals.get(MOVEMENT_OUTFLOW, 0)
    sales = totals.get(MOVEMENT_SALE, 0)
    expected = session.opening_amount_cents + inflow - outflow + cash_sales

    return {
        "opening_amount": from_cents(session.opening_amount_cents),
        "ingresos": from_cents(inflow),
        "egresos": from_cents(outflow),
        "ventas": from_cents(sales),
        "ventas_efectivo": from_cents(cash_sales),
        "expected_cash": from_cents(expected),
    }
