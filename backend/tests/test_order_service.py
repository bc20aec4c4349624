"""
Order workflow tests: creation, item replacement, kitchen progress.
"""

from datetime import datetime, timedelta

import pytest

from caja.extensions import db
from caja.models import Order, OrderItem
from caja.services import cash_service, order_service
from caja.services.order_service import OrderError
from caja.validation import ValidationError


BURGER = {"product_id": None, "description": "Burger", "quantity": 2, "unit_price": 10, "total": 20}
SODA = {"description": "Gaseosa", "quantity": 1, "unit_price": "3.50"}


# =============================================================================
# CREATE
# =============================================================================


class TestCreateOrder:

    def test_create_order(self, burger_order):
        order = order_service.get_order(burger_order.id)

        assert order.order_number == 1
        assert order.status == "open"
        assert order.prep_status == "unstarted"
        assert order.was_modified is False
        assert order.total_cents == 2000
        assert [(i.description, i.quantity, i.unit_price_cents, i.total_cents) for i in order.items] == [
            ("Burger", 2, 1000, 2000)
        ]

    def test_order_numbers_per_session(self, cashier, open_session):
        first = order_service.create_order(open_session.id, [BURGER])
        second = order_service.create_order(open_session.id, [SODA])
        assert (first.order_number, second.order_number) == (1, 2)

        cash_service.close_session(open_session.id, 100, cashier.id)
        next_session = cash_service.open_session(cashier.id)
        third = order_service.create_order(next_session.id, [SODA])
        assert third.order_number == 1

    def test_total_defaults_to_item_sum(self, open_session):
        order = order_service.create_order(open_session.id, [BURGER, SODA])
        assert order.total_cents == 2350

    def test_item_total_defaults_to_quantity_times_price(self, open_session):
        order = order_service.create_order(open_session.id, [SODA])
        assert order.items[0].total_cents == 350

    def test_unknown_session(self, app):
        with pytest.raises(OrderError) as exc:
            order_service.create_order(12, [BURGER])
        assert exc.value.code == "CASH_SESSION_NOT_FOUND"

    def test_closed_session(self, cashier, open_session):
        cash_service.close_session(open_session.id, 100, cashier.id)

        with pytest.raises(OrderError) as exc:
            order_service.create_order(open_session.id, [BURGER])
        assert exc.value.code == "CASH_SESSION_CLOSED"
        assert db.session.query(Order).count() == 0

    @pytest.mark.parametrize("items", [
        None,
        "burger",
        [{"description": "x", "quantity": 0, "unit_price": 1}],
        [{"description": "x", "quantity": 1, "unit_price": -1}],
        [{"description": "x", "quantity": 1}],
        ["not a dict"],
    ])
    def test_invalid_items(self, open_session, items):
        with pytest.raises(ValidationError) as exc:
            order_service.create_order(open_session.id, items)
        assert exc.value.code == "INVALID_ITEMS"

    def test_get_unknown_order(self, app):
        with pytest.raises(OrderError) as exc:
            order_service.get_order(1)
        assert exc.value.code == "ORDER_NOT_FOUND"
        assert exc.value.status_code == 404


class TestListOrders:

    def test_filters(self, cashier, open_session):
        first = order_service.create_order(open_session.id, [BURGER])
        second = order_service.create_order(open_session.id, [SODA])
        first.status = "closed"
        db.session.commit()

        all_ids = [o.id for o in order_service.list_orders(open_session.id)]
        assert all_ids == [second.id, first.id]

        for active in ("active", "activos", "open"):
            assert [o.id for o in order_service.list_orders(open_session.id, active)] == [second.id]
        assert [o.id for o in order_service.list_orders(open_session.id, "closed")] == [first.id]

    def test_unknown_status_filter(self, open_session):
        with pytest.raises(OrderError) as exc:
            order_service.list_orders(open_session.id, "pagado")
        assert exc.value.code == "INVALID_ORDER_STATUS"


# =============================================================================
# UPDATE
# =============================================================================


class TestUpdateOrder:

    def test_item_replacement_is_exclusive(self, burger_order):
        old_item_ids = [i.id for i in burger_order.items]

        order_service.update_order(burger_order.id, items=[SODA, {**SODA, "description": "Agua"}])

        order = order_service.get_order(burger_order.id)
        assert [i.description for i in order.items] == ["Gaseosa", "Agua"]
        assert order.was_modified is True
        assert order.items_updated_at is not None
        assert db.session.query(OrderItem).filter(OrderItem.id.in_(old_item_ids)).count() == 0
        assert db.session.query(OrderItem).count() == 2

    def test_total_update(self, burger_order):
        order_service.update_order(burger_order.id, total="18.90")
        assert order_service.get_order(burger_order.id).total_cents == 1890

    def test_nothing_to_update(self, burger_order):
        with pytest.raises(OrderError) as exc:
            order_service.update_order(burger_order.id)
        assert exc.value.code == "NOTHING_TO_UPDATE"

    def test_cannot_close_through_update(self, burger_order):
        with pytest.raises(OrderError) as exc:
            order_service.update_order(burger_order.id, status="closed")
        assert exc.value.code == "INVALID_ORDER_STATUS"
        assert order_service.get_order(burger_order.id).status == "open"

    def test_closed_order_is_read_only(self, burger_order):
        burger_order.status = "closed"
        db.session.commit()

        with pytest.raises(OrderError) as exc:
            order_service.update_order(burger_order.id, items=[SODA])
        assert exc.value.code == "ORDER_CLOSED"

    def test_unknown_order(self, app):
        with pytest.raises(OrderError) as exc:
            order_service.update_order(3, total=1)
        assert exc.value.code == "ORDER_NOT_FOUND"

    def test_invalid_items_leave_order_untouched(self, burger_order):
        with pytest.raises(ValidationError):
            order_service.update_order(burger_order.id, items=[{"quantity": "two", "unit_price": 1}])

        order = order_service.get_order(burger_order.id)
        assert [i.description for i in order.items] == ["Burger"]
        assert order.was_modified is False

    def test_prep_status_through_update_is_forward_only(self, burger_order):
        order_service.update_order(burger_order.id, prep_status="done")

        with pytest.raises(OrderError) as exc:
            order_service.update_order(burger_order.id, prep_status="unstarted")
        assert exc.value.code == "INVALID_PREP_TRANSITION"


# =============================================================================
# KITCHEN
# =============================================================================


class TestPrepStatus:

    def test_spanish_labels_in_order(self, burger_order):
        order_service.update_prep_status(burger_order.id, "en_preparacion")
        order = order_service.get_order(burger_order.id)
        assert order.prep_status == "in_progress"
        assert order.prep_started_at is not None

        order_service.update_prep_status(burger_order.id, "preparado")
        order = order_service.get_order(burger_order.id)
        assert order.prep_status == "done"
        assert order.prep_done_at is not None

    def test_abierto_is_not_a_target(self, burger_order):
        with pytest.raises(OrderError) as exc:
            order_service.update_prep_status(burger_order.id, "abierto")
        assert exc.value.code == "INVALID_PREP_STATUS"

    @pytest.mark.parametrize("value", ["unstarted", None, "", 3])
    def test_invalid_targets(self, burger_order, value):
        with pytest.raises(OrderError) as exc:
            order_service.update_prep_status(burger_order.id, value)
        assert exc.value.code == "INVALID_PREP_STATUS"

    def test_cannot_move_backwards(self, burger_order):
        order_service.update_prep_status(burger_order.id, "done")

        with pytest.raises(OrderError) as exc:
            order_service.update_prep_status(burger_order.id, "in_progress")
        assert exc.value.code == "INVALID_PREP_TRANSITION"

    def test_skipping_to_done_stamps_start(self, burger_order):
        order_service.update_prep_status(burger_order.id, "done")
        order = order_service.get_order(burger_order.id)
        assert order.prep_started_at is not None
        assert order.prep_done_at is not None

    def test_acknowledges_modification(self, burger_order):
        order_service.update_order(burger_order.id, items=[SODA])
        assert order_service.get_order(burger_order.id).was_modified is True

        order_service.update_prep_status(burger_order.id, "in_progress")
        assert order_service.get_order(burger_order.id).was_modified is False

        order_service.update_order(burger_order.id, items=[BURGER])
        order_service.update_prep_status(burger_order.id, "in_progress")
        assert order_service.get_order(burger_order.id).was_modified is False

    def test_closed_order(self, burger_order):
        burger_order.status = "closed"
        db.session.commit()

        with pytest.raises(OrderError) as exc:
            order_service.update_prep_status(burger_order.id, "done")
        assert exc.value.code == "ORDER_CLOSED"

    def test_unknown_order(self, app):
        with pytest.raises(OrderError) as exc:
            order_service.update_prep_status(99, "done")
        assert exc.value.code == "ORDER_NOT_FOUND"


class TestKitchenOrders:

    def test_requires_open_session(self, app):
        with pytest.raises(OrderError) as exc:
            order_service.kitchen_orders()
        assert exc.value.code == "NO_CASH_OPEN"

    def test_open_orders_oldest_first_with_items(self, open_session, products):
        first = order_service.create_order(
            open_session.id,
            [{"product_id": products["burger"].id, "description": "", "quantity": 1, "unit_price": 10}],
        )
        second = order_service.create_order(open_session.id, [SODA])
        closed = order_service.create_order(open_session.id, [SODA])
        closed.status = "closed"
        db.session.commit()

        items = order_service.kitchen_orders()

        assert [o["id"] for o in items] == [first.id, second.id]
        assert items[0]["items"][0]["product_name"] == "Burger"
        assert {"live_minutes", "prep_minutes", "total_minutes"} <= set(items[0])

    def test_prep_status_filter_accepts_alias(self, open_session):
        first = order_service.create_order(open_session.id, [SODA])
        order_service.create_order(open_session.id, [SODA])
        order_service.update_prep_status(first.id, "in_progress")

        items = order_service.kitchen_orders("en_preparacion")
        assert [o["id"] for o in items] == [first.id]

    def test_invalid_prep_filter(self, open_session):
        with pytest.raises(OrderError) as exc:
            order_service.kitchen_orders("listo")
        assert exc.value.code == "INVALID_PREP_STATUS"


class TestOrderTiming:

    def _order(self, **kwargs):
        return Order(
            created_at=datetime(2026, 3, 2, 12, 0),
            prep_status=kwargs.pop("prep_status", "unstarted"),
            **kwargs,
        )

    def test_unstarted(self):
        now = datetime(2026, 3, 2, 12, 10)
        timing = order_service.order_timing(self._order(), now)
        assert timing == {"live_minutes": 10, "prep_minutes": 0, "total_minutes": 10}

    def test_in_progress(self):
        now = datetime(2026, 3, 2, 12, 30)
        order = self._order(prep_status="in_progress", prep_started_at=datetime(2026, 3, 2, 12, 5))
        timing = order_service.order_timing(order, now)
        assert timing == {"live_minutes": 30, "prep_minutes": 25, "total_minutes": 30}

    def test_done_freezes_prep_and_total(self):
        now = datetime(2026, 3, 2, 14, 0)
        order = self._order(
            prep_status="done",
            prep_started_at=datetime(2026, 3, 2, 12, 5),
            prep_done_at=datetime(2026, 3, 2, 12, 20),
        )
        timing = order_service.order_timing(order, now)
        assert timing == {"live_minutes": 120, "prep_minutes": 15, "total_minutes": 20}

    def test_never_negative(self):
        now = datetime(2026, 3, 2, 12, 0) - timedelta(minutes=3)
        timing = order_service.order_timing(self._order(), now)
        assert timing["live_minutes"] == 0
