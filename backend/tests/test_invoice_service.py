"""
Invoice issuance tests.

Verifies:
- Type A requires a Responsable Inscripto customer
- subtotal + iva == total, with IVA carrying the rounding residue
- Consecutive numbering per (punto_venta, tipo_comprobante)
- Customer data is snapshotted at issuance
"""

from datetime import date, timedelta

import pytest

from caja.extensions import db
from caja.models import Invoice
from caja.services import checkout_service, invoice_service
from caja.services.invoice_service import InvoiceError, split_tax
from caja.time_utils import local_today


@pytest.fixture
def sale(cashier, open_session):
    result = checkout_service.direct_sale(
        [{"qty": 2, "price": 10}, {"qty": 1, "price": "1.23"}], "efectivo", cashier.id
    )
    return checkout_service.get_sale(result["sale_id"])


# =============================================================================
# TAX SPLIT
# =============================================================================


class TestSplitTax:

    def test_type_a_split(self):
        assert split_tax(10000, "A") == (7900, 2100)

    def test_type_b_has_no_iva(self):
        assert split_tax(2123, "B") == (2123, 0)

    @pytest.mark.parametrize("total", [0, 1, 2, 3, 7, 99, 101, 2123, 99999, 123457])
    def test_parts_always_add_up(self, total):
        subtotal, iva = split_tax(total, "A")
        assert subtotal + iva == total
        assert subtotal >= 0 and iva >= 0

    def test_no_residue_over_a_range(self):
        for total in range(0, 5000):
            subtotal, iva = split_tax(total, "A")
            assert subtotal + iva == total


# =============================================================================
# ISSUE
# =============================================================================


class TestIssueInvoice:

    def test_type_b_for_final_consumer(self, cashier, sale):
        invoice = invoice_service.issue_invoice(sale.id, "B", 1, cashier.id)

        assert invoice.numero_comprobante == 1
        assert invoice.numero_formateado == "0001-00000001"
        assert invoice.total_cents == 2123
        assert (invoice.subtotal_cents, invoice.iva_cents) == (2123, 0)
        assert invoice.cliente_razon_social == "Consumidor Final"
        assert invoice.cliente_condicion_iva == "CF"
        assert invoice.condicion_venta == "Contado"

    def test_type_a_for_ri_customer(self, cashier, sale, customers):
        invoice = invoice_service.issue_invoice(
            sale.id, "A", 3, cashier.id, customer_id=customers["ri"].id
        )

        assert invoice.total_cents == sale.total_cents
        assert invoice.subtotal_cents + invoice.iva_cents == invoice.total_cents
        assert invoice.cliente_razon_social == "Distribuidora Sur SRL"
        assert invoice.cliente_documento == "30712345678"
        assert invoice.cliente_direccion == "Av. Siempre Viva 742"
        assert invoice.cliente_condicion_iva == "RI"

    def test_type_a_rejects_non_ri_customer(self, cashier, sale, customers):
        with pytest.raises(InvoiceError) as exc:
            invoice_service.issue_invoice(sale.id, "A", 1, cashier.id, customer_id=customers["cf"].id)

        assert exc.value.code == "INVOICE_A_REQUIRES_RI_CUSTOMER"
        assert db.session.query(Invoice).count() == 0

    def test_type_a_requires_customer(self, cashier, sale):
        with pytest.raises(InvoiceError) as exc:
            invoice_service.issue_invoice(sale.id, "A", 1, cashier.id)
        assert exc.value.code == "INVOICE_A_REQUIRES_CUSTOMER"

    def test_snapshot_survives_customer_edit(self, cashier, sale, customers):
        cf = customers["cf"]
        invoice = invoice_service.issue_invoice(sale.id, "B", 1, cashier.id, customer_id=cf.id)
        assert invoice.cliente_razon_social == "Juan Perez"

        cf.apellido = "Gomez"
        db.session.commit()

        assert invoice_service.get_invoice(invoice.id).cliente_razon_social == "Juan Perez"

    def test_numbering_per_point_of_sale_and_type(self, cashier, sale, customers):
        ri = customers["ri"].id
        b1 = invoice_service.issue_invoice(sale.id, "B", 1, cashier.id)
        b2 = invoice_service.issue_invoice(sale.id, "B", 1, cashier.id)
        a1 = invoice_service.issue_invoice(sale.id, "A", 1, cashier.id, customer_id=ri)
        b_other = invoice_service.issue_invoice(sale.id, "B", 2, cashier.id)
        a2 = invoice_service.issue_invoice(sale.id, "A", 1, cashier.id, customer_id=ri)

        assert [i.numero_comprobante for i in (b1, b2, a1, b_other, a2)] == [1, 2, 1, 1, 2]

    def test_numbering_continues_after_existing_rows(self, cashier, sale):
        db.session.add(Invoice(
            sale_id=sale.id,
            tipo_comprobante="B",
            punto_venta=1,
            numero_comprobante=41,
            subtotal_cents=sale.total_cents,
            iva_cents=0,
            total_cents=sale.total_cents,
            created_by=cashier.id,
        ))
        db.session.commit()

        invoice = invoice_service.issue_invoice(sale.id, "B", 1, cashier.id)
        assert invoice.numero_comprobante == 42

    def test_punto_venta_defaults_from_config(self, app, cashier, sale):
        app.config["CAJA_DEFAULT_PUNTO_VENTA"] = 7
        invoice = invoice_service.issue_invoice(sale.id, "B", None, cashier.id)
        assert invoice.punto_venta == 7

    @pytest.mark.parametrize("sale_id,tipo,pv,code", [
        (None, "B", 1, "MISSING_REQUIRED_FIELDS"),
        (1, None, 1, "MISSING_REQUIRED_FIELDS"),
        (1, "C", 1, "INVALID_INVOICE_TYPE"),
        (1, "B", 0, "INVALID_PUNTO_VENTA"),
        (1, "B", 10000, "INVALID_PUNTO_VENTA"),
        (1, "B", "uno", "INVALID_PUNTO_VENTA"),
        ("abc", "B", 1, "INVALID_SALE_ID"),
    ])
    def test_invalid_requests(self, cashier, sale_id, tipo, pv, code):
        with pytest.raises(InvoiceError) as exc:
            invoice_service.issue_invoice(sale_id, tipo, pv, cashier.id)
        assert exc.value.code == code
        assert db.session.query(Invoice).count() == 0

    def test_unknown_sale(self, cashier):
        with pytest.raises(InvoiceError) as exc:
            invoice_service.issue_invoice(999, "B", 1, cashier.id)
        assert exc.value.code == "SALE_NOT_FOUND"
        assert exc.value.status_code == 404

    def test_unknown_customer(self, cashier, sale):
        with pytest.raises(InvoiceError) as exc:
            invoice_service.issue_invoice(sale.id, "B", 1, cashier.id, customer_id=555)
        assert exc.value.code == "CUSTOMER_NOT_FOUND"
        assert exc.value.status_code == 400


# =============================================================================
# LOOKUP
# =============================================================================


class TestLookup:

    def test_payload_embeds_sale_items(self, cashier, sale):
        invoice = invoice_service.issue_invoice(sale.id, "B", 1, cashier.id)

        payload = invoice_service.invoice_payload(invoice_service.get_invoice(invoice.id))

        assert payload["sale_total"] == 21.23
        assert [i["qty"] for i in payload["items"]] == [2, 1]
        assert payload["numero_formateado"] == "0001-00000001"

    def test_latest_invoice_for_sale(self, cashier, sale):
        invoice_service.issue_invoice(sale.id, "B", 1, cashier.id)
        second = invoice_service.issue_invoice(sale.id, "B", 1, cashier.id)

        assert invoice_service.get_invoice_for_sale(sale.id).id == second.id

    def test_not_found(self, app):
        with pytest.raises(InvoiceError) as exc:
            invoice_service.get_invoice(1)
        assert exc.value.code == "INVOICE_NOT_FOUND"

        with pytest.raises(InvoiceError) as exc:
            invoice_service.get_invoice_for_sale(1)
        assert exc.value.code == "INVOICE_NOT_FOUND"

    def test_list_filters(self, cashier, sale, customers):
        b = invoice_service.issue_invoice(sale.id, "B", 1, cashier.id)
        a = invoice_service.issue_invoice(sale.id, "A", 1, cashier.id, customer_id=customers["ri"].id)

        today = local_today()
        assert [i.id for i in invoice_service.list_invoices(today, today)] == [a.id, b.id]
        assert [i.id for i in invoice_service.list_invoices(tipo="B")] == [b.id]
        assert invoice_service.list_invoices(date_from=today + timedelta(days=1)) == []
        assert invoice_service.list_invoices(date_to=date(2000, 1, 1)) == []

    def test_list_rejects_unknown_type(self, app):
        with pytest.raises(InvoiceError) as exc:
            invoice_service.list_invoices(tipo="X")
        assert exc.value.code == "INVALID_INVOICE_TYPE"
