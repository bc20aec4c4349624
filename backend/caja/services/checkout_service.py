# Overview: Service-layer operations for checkout; direct sales and order charging.

"""
Checkout Service

WHY: A sale is the moment money enters the drawer. The Sale, its SaleItems
and the matching venta CashMovement must exist together or not at all;
charging an order additionally closes it in the same transaction.

DESIGN PRINCIPLES:
- One store transaction per checkout (run_with_retry rolls back on any error)
- Charging locks the order row, then its own cash session row
- An order is charged against the session it was created in, even if a
  newer session is current; that session must still be open
- Sales are immutable once written
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy.orm import selectinload

from ..extensions import db
from ..models import CashMovement, CashSession, Order, Product, Sale, SaleItem
from ..models.cash import MOVEMENT_SALE
from ..models.orders import ORDER_CLOSED, PREP_DONE
from ..time_utils import utcnow
from ..validation import SaleItemInput, parse_sale_items
from .cash_service import open_sessions_query
from .concurrency import lock_for_update, run_with_retry, serialize_writes
from .errors import ServiceError


DEFAULT_PAYMENT_METHOD = "efectivo"
MAX_PAYMENT_METHOD_LENGTH = 32


class CheckoutError(ServiceError):
    """Raised for checkout errors."""
    pass


def normalize_payment_method(value) -> str:
    """Missing/blank -> efectivo. Otherwise any string up to 32 chars."""
    if value is None:
        return DEFAULT_PAYMENT_METHOD
    if not isinstance(value, str):
        raise CheckoutError("INVALID_PAYMENT_METHOD")
    value = value.strip().lower()
    if not value:
        return DEFAULT_PAYMENT_METHOD
    if len(value) > MAX_PAYMENT_METHOD_LENGTH:
        raise CheckoutError("INVALID_PAYMENT_METHOD")
    return value


def _sale_reference(sale_id: int, payment_method: str) -> str:
    return f"Venta #{sale_id} ({payment_method})"


def _record_sale(
    session: CashSession,
    lines: list[SaleItem],
    total_cents: int,
    payment_method: str,
    user_id: int,
    order_id: int | None = None,
) -> Sale:
    """
    Insert Sale, SaleItems and the venta movement. Does not commit.

    Caller holds the session lock and owns the transaction.
    """
    now = utcnow()
    sale = Sale(
        user_id=user_id,
        total_cents=total_cents,
        payment_method=payment_method,
        cash_session_id=session.id,
        shift_number=session.shift_number,
        order_id=order_id,
        created_at=now,
    )
    db.session.add(sale)
    db.session.flush()  # sale.id for items and the movement reference

    for line in lines:
        line.sale_id = sale.id
        db.session.add(line)

    db.session.add(CashMovement(
        session_id=session.id,
        type=MOVEMENT_SALE,
        amount_cents=total_cents,
        reference=_sale_reference(sale.id, payment_method),
        sale_id=sale.id,
        user_id=user_id,
        created_at=now,
    ))
    return sale


def _price_lines(items: list[SaleItemInput]) -> list[SaleItem]:
    """
    Build SaleItem rows for a direct sale.

    With CAJA_ENFORCE_CATALOG_PRICES on, non-manual lines must name an active
    product and are charged at its catalog price.
    """
    enforce = current_app.config.get("CAJA_ENFORCE_CATALOG_PRICES", False)

    lines = []
    for item in items:
        price_cents = item.price_cents
        description = None
        if item.product_id is not None or (enforce and not item.manual):
            product = db.session.get(Product, item.product_id) if item.product_id is not None else None
            if enforce and not item.manual:
                if not product or not product.is_active:
                    raise CheckoutError(
                        "PRODUCT_NOT_FOUND",
                        {"product_id": item.product_id},
                        status_code=400,
                    )
                price_cents = product.price_cents
            if product:
                description = product.name

        lines.append(SaleItem(
            product_id=item.product_id,
            description=description,
            qty=item.qty,
            price_cents=price_cents,
        ))
    return lines


# =============================================================================
# DIRECT SALE
# =============================================================================

def direct_sale(items, payment_method, user_id: int) -> dict:
    """
    Walk-up sale with no order, recorded against the current session.

    total = sum(qty x price)

    Returns {sale_id, total_cents, cash_session_id, shift_number}.

    Raises:
        CheckoutError: NO_ITEMS, NO_CASH_OPEN, PRODUCT_NOT_FOUND,
            INVALID_PAYMENT_METHOD
        ValidationError: INVALID_ITEMS
    """
    if not isinstance(items, list) or not items:
        raise CheckoutError("NO_ITEMS")
    parsed_items = parse_sale_items(items)
    payment_method = normalize_payment_method(payment_method)

    def _op():
        serialize_writes()
        session = lock_for_update(open_sessions_query()).first()
        if not session:
            raise CheckoutError("NO_CASH_OPEN")

        lines = _price_lines(parsed_items)
        total_cents = sum(line.price_cents * line.qty for line in lines)

        sale = _record_sale(session, lines, total_cents, payment_method, user_id)
        db.session.commit()
        return {
            "sale_id": sale.id,
            "total_cents": total_cents,
            "cash_session_id": session.id,
            "shift_number": session.shift_number,
        }

    return run_with_retry(_op)


# =============================================================================
# CHARGE ORDER
# =============================================================================

def charge_order(order_id: int, payment_method, user_id: int) -> dict:
    """
    Charge an open order and close it.

    total = stored order total if positive, else sum(unit_price x quantity).

    All-or-nothing: on any failure the order is left untouched and can be
    charged again.

    Returns {sale_id, total_cents, order_id, cash_session_id}.

    Raises:
        CheckoutError: ORDER_NOT_FOUND (404), ORDER_ALREADY_CLOSED,
            ORDER_WITHOUT_ITEMS, CASH_SESSION_NOT_FOUND, CASH_SESSION_CLOSED,
            INVALID_PAYMENT_METHOD
    """
    payment_method = normalize_payment_method(payment_method)

    def _op():
        serialize_writes()

        order = lock_for_update(db.session.query(Order).filter_by(id=order_id)).first()
        if not order:
            raise CheckoutError("ORDER_NOT_FOUND")
        if order.status == ORDER_CLOSED:
            raise CheckoutError("ORDER_ALREADY_CLOSED")
        if not order.items:
            raise CheckoutError("ORDER_WITHOUT_ITEMS")

        session = lock_for_update(
            db.session.query(CashSession).filter_by(id=order.cash_session_id)
        ).first()
        if not session:
            raise CheckoutError("CASH_SESSION_NOT_FOUND", status_code=400)
        if not session.is_open:
            raise CheckoutError("CASH_SESSION_CLOSED")

        if order.total_cents and order.total_cents > 0:
            total_cents = order.total_cents
        else:
            total_cents = sum(item.unit_price_cents * item.quantity for item in order.items)

        lines = [
            SaleItem(
                product_id=item.product_id,
                description=item.description or None,
                qty=item.quantity,
                price_cents=item.unit_price_cents,
            )
            for item in order.items
        ]
        sale = _record_sale(session, lines, total_cents, payment_method, user_id, order_id=order.id)

        now = utcnow()
        order.status = ORDER_CLOSED
        order.prep_status = PREP_DONE
        if order.prep_done_at is None:
            order.prep_done_at = now
        order.was_modified = False
        order.closed_at = now
        order.updated_at = now

        db.session.commit()
        return {
            "sale_id": sale.id,
            "total_cents": total_cents,
            "order_id": order.id,
            "cash_session_id": session.id,
        }

    return run_with_retry(_op)


def get_sale(sale_id: int) -> Sale:
    """Sale with items. Raises CheckoutError SALE_NOT_FOUND."""
    sale = (
        db.session.query(Sale)
        .options(selectinload(Sale.items).selectinload(SaleItem.product))
        .filter_by(id=sale_id)
        .first()
    )
    if not sale:
        raise CheckoutError("SALE_NOT_FOUND")
    return sale
