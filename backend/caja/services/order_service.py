# Overview: Service-layer operations for orders; creation, item replacement, kitchen progress.

"""
Order Workflow Service

WHY: Orders are taken, edited and prepared before they are paid. The kitchen
display follows prep_status while the cashier works with status; checkout
(checkout_service) is the only place an order becomes closed.

LIFECYCLE:
- status:      open -> closed (closed only by charge)
- prep_status: unstarted -> in_progress -> done (forward only)

EDITS: the item set is replaced as a unit (delete all, insert all). Any such
replacement sets was_modified so the kitchen notices the change; a prep
status update acknowledges it.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy.orm import selectinload

from ..extensions import db
from ..models import CashSession, Order, OrderItem
from ..models.orders import (
    ORDER_OPEN,
    ORDER_CLOSED,
    PREP_UNSTARTED,
    PREP_IN_PROGRESS,
    PREP_DONE,
    PREP_SEQUENCE,
)
from ..time_utils import minutes_between, utcnow
from ..validation import OrderItemInput, parse_order_items, to_cents, ValidationError
from .cash_service import get_current_session
from .concurrency import lock_for_update, run_with_retry, serialize_writes
from .errors import ServiceError
from .sequence_service import next_sequence_value


# Kitchen display labels accepted as prep transition targets
PREP_ALIASES = {
    "en_preparacion": PREP_IN_PROGRESS,
    "preparado": PREP_DONE,
}
PREP_TARGETS = (PREP_IN_PROGRESS, PREP_DONE)

ACTIVE_FILTERS = ("active", "activos")


class OrderError(ServiceError):
    """Raised for order workflow errors."""
    pass


def normalize_prep_status(value) -> str | None:
    """Map a prep status (or its kitchen alias) to the stored value."""
    if not isinstance(value, str):
        return None
    value = value.strip()
    value = PREP_ALIASES.get(value, value)
    return value if value in PREP_SEQUENCE else None


def _item_rows(items: list[OrderItemInput]) -> list[OrderItem]:
    return [
        OrderItem(
            product_id=item.product_id,
            description=item.description,
            quantity=item.quantity,
            unit_price_cents=item.unit_price_cents,
            total_cents=item.total_cents,
        )
        for item in items
    ]


def _advance_prep(order: Order, target: str, now: datetime) -> None:
    """Move prep_status forward to target, stamping timing columns."""
    current_rank = PREP_SEQUENCE.index(order.prep_status)
    target_rank = PREP_SEQUENCE.index(target)
    if target_rank < current_rank:
        raise OrderError(
            "INVALID_PREP_TRANSITION",
            {"from": order.prep_status, "to": target},
        )

    if target in (PREP_IN_PROGRESS, PREP_DONE) and order.prep_started_at is None:
        order.prep_started_at = now
    if target == PREP_DONE and order.prep_done_at is None:
        order.prep_done_at = now
    order.prep_status = target


# =============================================================================
# CREATE / READ
# =============================================================================

def create_order(cash_session_id: int, items, total=None) -> Order:
    """
    Create an open, unstarted order in an open cash session.

    order_number restarts at 1 for every session. When total is omitted it
    is the sum of item totals.

    Raises:
        ValidationError: INVALID_ITEMS, INVALID_TOTAL
        OrderError: CASH_SESSION_NOT_FOUND, CASH_SESSION_CLOSED
    """
    parsed_items = parse_order_items(items)
    if total is None:
        total_cents = sum(item.total_cents for item in parsed_items)
    else:
        total_cents = to_cents(total, "INVALID_TOTAL")
        if total_cents < 0:
            raise ValidationError("INVALID_TOTAL")

    def _op():
        serialize_writes()
        session = lock_for_update(db.session.query(CashSession).filter_by(id=cash_session_id)).first()
        if not session:
            raise OrderError("CASH_SESSION_NOT_FOUND", status_code=400)
        if not session.is_open:
            raise OrderError("CASH_SESSION_CLOSED")

        order_number = next_sequence_value(
            "order",
            str(session.id),
            seed=lambda: db.session.query(db.func.max(Order.order_number))
            .filter(Order.cash_session_id == session.id)
            .scalar(),
        )

        now = utcnow()
        order = Order(
            cash_session_id=session.id,
            order_number=order_number,
            status=ORDER_OPEN,
            prep_status=PREP_UNSTARTED,
            total_cents=total_cents,
            was_modified=False,
            created_at=now,
        )
        order.items = _item_rows(parsed_items)
        db.session.add(order)
        db.session.commit()
        return order

    return run_with_retry(_op)


def get_order(order_id: int) -> Order:
    """Order with its items loaded. Raises OrderError ORDER_NOT_FOUND."""
    order = (
        db.session.query(Order)
        .options(selectinload(Order.items))
        .filter_by(id=order_id)
        .first()
    )
    if not order:
        raise OrderError("ORDER_NOT_FOUND")
    return order


def list_orders(cash_session_id: int, status: str | None = None) -> list[Order]:
    """
    Orders of a session, newest first.

    status: "active"/"activos" for open orders only, or an exact status.
    """
    query = db.session.query(Order).filter_by(cash_session_id=cash_session_id)
    if status in ACTIVE_FILTERS:
        query = query.filter(Order.status == ORDER_OPEN)
    elif status:
        if status not in (ORDER_OPEN, ORDER_CLOSED):
            raise OrderError("INVALID_ORDER_STATUS")
        query = query.filter(Order.status == status)
    return query.order_by(Order.created_at.desc(), Order.id.desc()).all()


# =============================================================================
# UPDATE
# =============================================================================

def update_order(
    order_id: int,
    *,
    status: str | None = None,
    prep_status: str | None = None,
    total=None,
    items=None,
) -> Order:
    """
    Update an open order.

    items (when given) replaces the whole item set and flags the order as
    modified. status may only be "open": closing belongs to checkout.

    Raises:
        OrderError: ORDER_NOT_FOUND, ORDER_CLOSED, NOTHING_TO_UPDATE,
            INVALID_ORDER_STATUS, INVALID_PREP_STATUS, INVALID_PREP_TRANSITION
        ValidationError: INVALID_ITEMS, INVALID_TOTAL
    """
    if status is None and prep_status is None and total is None and items is None:
        raise OrderError("NOTHING_TO_UPDATE")

    if status is not None and status != ORDER_OPEN:
        raise OrderError("INVALID_ORDER_STATUS")

    target_prep = None
    if prep_status is not None:
        target_prep = normalize_prep_status(prep_status)
        if target_prep is None:
            raise OrderError("INVALID_PREP_STATUS")

    total_cents = None
    if total is not None:
        total_cents = to_cents(total, "INVALID_TOTAL")
        if total_cents < 0:
            raise ValidationError("INVALID_TOTAL")

    parsed_items = parse_order_items(items) if items is not None else None

    def _op():
        serialize_writes()
        order = lock_for_update(db.session.query(Order).filter_by(id=order_id)).first()
        if not order:
            raise OrderError("ORDER_NOT_FOUND")
        if order.status == ORDER_CLOSED:
            raise OrderError("ORDER_CLOSED")

        now = utcnow()
        if target_prep is not None:
            _advance_prep(order, target_prep, now)
        if total_cents is not None:
            order.total_cents = total_cents
        if parsed_items is not None:
            order.items = _item_rows(parsed_items)
            order.was_modified = True
            order.items_updated_at = now

        order.updated_at = now
        db.session.commit()
        return order

    return run_with_retry(_op)


def update_prep_status(order_id: int, prep_status) -> Order:
    """
    Kitchen transition to in_progress or done.

    Clears was_modified (the kitchen has seen the current items).

    Raises:
        OrderError: INVALID_PREP_STATUS, ORDER_NOT_FOUND, ORDER_CLOSED,
            INVALID_PREP_TRANSITION
    """
    target = normalize_prep_status(prep_status)
    if target not in PREP_TARGETS:
        raise OrderError("INVALID_PREP_STATUS", {"allowed": list(PREP_TARGETS)})

    def _op():
        serialize_writes()
        order = lock_for_update(db.session.query(Order).filter_by(id=order_id)).first()
        if not order:
            raise OrderError("ORDER_NOT_FOUND")
        if order.status == ORDER_CLOSED:
            raise OrderError("ORDER_CLOSED")

        now = utcnow()
        _advance_prep(order, target, now)
        order.was_modified = False
        order.updated_at = now
        db.session.commit()
        return order

    return run_with_retry(_op)


# =============================================================================
# KITCHEN
# =============================================================================

def order_timing(order: Order, now: datetime | None = None) -> dict:
    """
    Elapsed-time metrics in whole minutes.

    - live_minutes: creation -> now
    - prep_minutes: prep start -> done (or now); 0 if not started
    - total_minutes: creation -> done if done, else creation -> now
    """
    now = now or utcnow()
    done_at = order.prep_done_at if order.prep_status == PREP_DONE else None

    if order.prep_started_at is not None:
        prep_minutes = minutes_between(order.prep_started_at, done_at or now)
    else:
        prep_minutes = 0

    return {
        "live_minutes": minutes_between(order.created_at, now),
        "prep_minutes": prep_minutes,
        "total_minutes": minutes_between(order.created_at, done_at or now),
    }


def kitchen_orders(prep_status: str | None = None) -> list[dict]:
    """
    Open orders of the current session for the kitchen display, oldest first.

    Each entry carries its items and timing metrics.

    Raises:
        OrderError: NO_CASH_OPEN, INVALID_PREP_STATUS
    """
    session = get_current_session()
    if not session:
        raise OrderError("NO_CASH_OPEN")

    query = (
        db.session.query(Order)
        .options(selectinload(Order.items).selectinload(OrderItem.product))
        .filter(Order.cash_session_id == session.id, Order.status == ORDER_OPEN)
    )
    if prep_status:
        target = normalize_prep_status(prep_status)
        if target is None:
            raise OrderError("INVALID_PREP_STATUS")
        query = query.filter(Order.prep_status == target)

    now = utcnow()
    result = []
    for order in query.order_by(Order.created_at.asc(), Order.id.asc()).all():
        d = order.to_dict()
        d["items"] = [item.to_dict() for item in order.items]
        d.update(order_timing(order, now))
        result.append(d)
    return result
