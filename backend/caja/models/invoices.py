from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z
from ..validation import from_cents


INVOICE_TYPES = ("A", "B")


class Invoice(db.Model):
    """
    Locally numbered fiscal-style document ("comprobante") for a sale.

    Numbering is per (punto_venta, tipo_comprobante) with no reuse. The
    cliente_* columns snapshot the customer at issuance so later edits to
    the customer never alter an issued invoice.
    """
    __tablename__ = "invoices"
    __table_args__ = (
        db.UniqueConstraint(
            "punto_venta", "tipo_comprobante", "numero_comprobante",
            name="uq_invoices_pv_tipo_numero",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)

    tipo_comprobante = db.Column(db.String(1), nullable=False)
    punto_venta = db.Column(db.Integer, nullable=False, default=1)
    numero_comprobante = db.Column(db.Integer, nullable=False)

    # subtotal + iva == total, always
    subtotal_cents = db.Column(db.Integer, nullable=False)
    iva_cents = db.Column(db.Integer, nullable=False)
    total_cents = db.Column(db.Integer, nullable=False)

    condicion_venta = db.Column(db.String(32), nullable=False, default="Contado")

    cliente_razon_social = db.Column(db.String(160), nullable=False, default="Consumidor Final")
    cliente_documento = db.Column(db.String(20), nullable=True)
    cliente_direccion = db.Column(db.String(200), nullable=True)
    cliente_condicion_iva = db.Column(db.String(4), nullable=False, default="CF")

    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    fecha_emision = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    sale = db.relationship("Sale", backref=db.backref("invoices", lazy=True))
    customer = db.relationship("Customer")

    @property
    def numero_formateado(self) -> str:
        """Display number, e.g. 0001-00000042."""
        return f"{self.punto_venta:04d}-{self.numero_comprobante:08d}"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "customer_id": self.customer_id,
            "tipo_comprobante": self.tipo_comprobante,
            "punto_venta": self.punto_venta,
            "numero_comprobante": self.numero_comprobante,
            "numero_formateado": self.numero_formateado,
            "subtotal": from_cents(self.subtotal_cents),
            "iva": from_cents(self.iva_cents),
            "total": from_cents(self.total_cents),
            "condicion_venta": self.condicion_venta,
            "cliente_razon_social": self.cliente_razon_social,
            "cliente_documento": self.cliente_documento,
            "cliente_direccion": self.cliente_direccion,
            "cliente_condicion_iva": self.cliente_condicion_iva,
            "created_by": self.created_by,
            "fecha_emision": to_utc_z(self.fecha_emision),
        }
