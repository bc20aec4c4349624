"""
Checkout tests: direct sales and order charging.

Verifies:
- Sale, SaleItems and the venta movement are written together
- Charging closes the order in the same transaction
- A failed charge leaves no partial state and the order chargeable
- Orders are charged against the session they belong to
"""

import pytest

from caja.extensions import db
from caja.models import CashMovement, Order, Sale, SaleItem
from caja.services import cash_service, checkout_service, order_service
from caja.services.checkout_service import CheckoutError
from caja.validation import ValidationError


def _counts():
    return (
        db.session.query(Sale).count(),
        db.session.query(SaleItem).count(),
        db.session.query(CashMovement).filter_by(type="venta").count(),
    )


# =============================================================================
# CHARGE ORDER
# =============================================================================


class TestChargeOrder:

    def test_charge_burger_order(self, cashier, open_session, burger_order):
        result = checkout_service.charge_order(burger_order.id, "efectivo", cashier.id)

        sale = db.session.get(Sale, result["sale_id"])
        assert result["total_cents"] == 2000
        assert sale.total_cents == 2000
        assert sale.payment_method == "efectivo"
        assert sale.order_id == burger_order.id
        assert sale.cash_session_id == open_session.id
        assert sale.shift_number == open_session.shift_number
        assert [(i.description, i.qty, i.price_cents) for i in sale.items] == [("Burger", 2, 1000)]

        movement = db.session.query(CashMovement).filter_by(sale_id=sale.id).one()
        assert movement.type == "venta"
        assert movement.amount_cents == 2000
        assert movement.reference == f"Venta #{sale.id} (efectivo)"

        order = db.session.get(Order, burger_order.id)
        assert order.status == "closed"
        assert order.prep_status == "done"
        assert order.was_modified is False
        assert order.closed_at is not None

    def test_second_charge_is_rejected(self, cashier, burger_order):
        checkout_service.charge_order(burger_order.id, "efectivo", cashier.id)

        with pytest.raises(CheckoutError) as exc:
            checkout_service.charge_order(burger_order.id, "efectivo", cashier.id)
        assert exc.value.code == "ORDER_ALREADY_CLOSED"
        assert _counts() == (1, 1, 1)

    def test_payment_method_defaults_to_cash(self, cashier, burger_order):
        result = checkout_service.charge_order(burger_order.id, None, cashier.id)
        assert db.session.get(Sale, result["sale_id"]).payment_method == "efectivo"

    def test_zero_total_is_recomputed_from_items(self, cashier, open_session):
        order = order_service.create_order(
            open_session.id,
            [
                {"description": "Empanada", "quantity": 3, "unit_price": "2.50"},
                {"description": "Agua", "quantity": 1, "unit_price": 2},
            ],
            total=0,
        )

        result = checkout_service.charge_order(order.id, "qr", cashier.id)
        assert result["total_cents"] == 950

    def test_unknown_order(self, cashier, open_session):
        with pytest.raises(CheckoutError) as exc:
            checkout_service.charge_order(404, "efectivo", cashier.id)
        assert exc.value.code == "ORDER_NOT_FOUND"
        assert exc.value.status_code == 404

    def test_order_without_items(self, cashier, open_session):
        order = order_service.create_order(open_session.id, [])

        with pytest.raises(CheckoutError) as exc:
            checkout_service.charge_order(order.id, "efectivo", cashier.id)
        assert exc.value.code == "ORDER_WITHOUT_ITEMS"

    def test_order_of_closed_session(self, cashier, open_session, burger_order):
        cash_service.close_session(open_session.id, 100, cashier.id)
        cash_service.open_session(cashier.id)

        with pytest.raises(CheckoutError) as exc:
            checkout_service.charge_order(burger_order.id, "efectivo", cashier.id)
        assert exc.value.code == "CASH_SESSION_CLOSED"
        assert db.session.get(Order, burger_order.id).status == "open"
        assert _counts() == (0, 0, 0)

    def test_failure_rolls_back_everything(self, cashier, burger_order, monkeypatch):
        def broken_reference(sale_id, payment_method):
            raise RuntimeError("movement insert failed")

        monkeypatch.setattr(checkout_service, "_sale_reference", broken_reference)

        with pytest.raises(RuntimeError):
            checkout_service.charge_order(burger_order.id, "efectivo", cashier.id)

        assert _counts() == (0, 0, 0)
        order = db.session.get(Order, burger_order.id)
        assert order.status == "open"
        assert order.prep_status == "unstarted"

        monkeypatch.undo()
        result = checkout_service.charge_order(burger_order.id, "efectivo", cashier.id)
        assert result["total_cents"] == 2000
        assert _counts() == (1, 1, 1)

    def test_invalid_payment_method(self, cashier, burger_order):
        with pytest.raises(CheckoutError) as exc:
            checkout_service.charge_order(burger_order.id, "x" * 40, cashier.id)
        assert exc.value.code == "INVALID_PAYMENT_METHOD"


# =============================================================================
# DIRECT SALE
# =============================================================================


class TestDirectSale:

    def test_direct_sale(self, cashier, open_session, products):
        result = checkout_service.direct_sale(
            [
                {"product_id": products["burger"].id, "qty": 2, "price": 10},
                {"product_id": products["fries"].id, "qty": 1, "price": "4.50"},
            ],
            "qr",
            cashier.id,
        )

        assert result == {
            "sale_id": result["sale_id"],
            "total_cents": 2450,
            "cash_session_id": open_session.id,
            "shift_number": open_session.shift_number,
        }
        sale = checkout_service.get_sale(result["sale_id"])
        assert sale.order_id is None
        assert [i.to_dict()["product_name"] for i in sale.items] == ["Burger", "Papas fritas"]

        movement = db.session.query(CashMovement).filter_by(sale_id=sale.id).one()
        assert movement.reference == f"Venta #{sale.id} (qr)"
        assert movement.amount_cents == 2450

    def test_requires_items(self, cashier, open_session):
        for items in (None, [], "x"):
            with pytest.raises(CheckoutError) as exc:
                checkout_service.direct_sale(items, "efectivo", cashier.id)
            assert exc.value.code == "NO_ITEMS"

    def test_requires_open_session(self, cashier):
        with pytest.raises(CheckoutError) as exc:
            checkout_service.direct_sale([{"qty": 1, "price": 1}], "efectivo", cashier.id)
        assert exc.value.code == "NO_CASH_OPEN"

    @pytest.mark.parametrize("item", [
        {"qty": 0, "price": 1},
        {"qty": 1, "price": 1e30},
        {"qty": 1, "price": "-1e40"},
        {"qty": "³", "price": 1},
    ])
    def test_invalid_item(self, cashier, open_session, item):
        with pytest.raises(ValidationError) as exc:
            checkout_service.direct_sale([item], "efectivo", cashier.id)
        assert exc.value.code == "INVALID_ITEMS"
        assert _counts() == (0, 0, 0)

    def test_client_prices_trusted_by_default(self, cashier, open_session, products):
        result = checkout_service.direct_sale(
            [{"product_id": products["burger"].id, "qty": 1, "price": 1}], None, cashier.id
        )
        assert result["total_cents"] == 100

    def test_catalog_prices_enforced(self, app, cashier, open_session, products):
        app.config["CAJA_ENFORCE_CATALOG_PRICES"] = True

        result = checkout_service.direct_sale(
            [
                {"product_id": products["burger"].id, "qty": 2, "price": 1},
                {"qty": 1, "price": "7.25", "manual": True},
            ],
            "efectivo",
            cashier.id,
        )
        assert result["total_cents"] == 2 * 1000 + 725

    @pytest.mark.parametrize("line", [
        {"qty": 1, "price": 5},
        {"product_id": 999, "qty": 1, "price": 5},
    ])
    def test_catalog_enforcement_rejects_unknown_products(self, app, cashier, open_session, line):
        app.config["CAJA_ENFORCE_CATALOG_PRICES"] = True

        with pytest.raises(CheckoutError) as exc:
            checkout_service.direct_sale([line], "efectivo", cashier.id)
        assert exc.value.code == "PRODUCT_NOT_FOUND"
        assert exc.value.status_code == 400
        assert _counts() == (0, 0, 0)

    def test_catalog_enforcement_rejects_inactive_products(self, app, cashier, open_session, products):
        app.config["CAJA_ENFORCE_CATALOG_PRICES"] = True

        with pytest.raises(CheckoutError) as exc:
            checkout_service.direct_sale(
                [{"product_id": products["retired"].id, "qty": 1, "price": 5}], "efectivo", cashier.id
            )
        assert exc.value.code == "PRODUCT_NOT_FOUND"

    def test_get_unknown_sale(self, app):
        with pytest.raises(CheckoutError) as exc:
            checkout_service.get_sale(8)
        assert exc.value.code == "SALE_NOT_FOUND"
