from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z
from ..validation import from_cents


class Sale(db.Model):
    """
    Completed, paid transaction. Immutable once written.

    shift_number is a snapshot of the session's shift at creation time so
    historical reports never depend on live session data. Corrections are
    made with new manual cash movements, never by editing a Sale.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_session_created", "cash_session_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    total_cents = db.Column(db.Integer, nullable=False)
    payment_method = db.Column(db.String(32), nullable=False, default="efectivo")

    cash_session_id = db.Column(db.Integer, db.ForeignKey("cash_sessions.id"), nullable=False, index=True)
    shift_number = db.Column(db.Integer, nullable=False, index=True)

    # Set when the sale was produced by charging an order
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=True, unique=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    user = db.relationship("User")
    cash_session = db.relationship("CashSession", backref=db.backref("sales", lazy=True))
    items = db.relationship("SaleItem", backref="sale", lazy=True, order_by="SaleItem.id")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "user_name": self.user.full_name if self.user else None,
            "total": from_cents(self.total_cents),
            "payment_method": self.payment_method,
            "cash_session_id": self.cash_session_id,
            "shift_number": self.shift_number,
            "order_id": self.order_id,
            "created_at": to_utc_z(self.created_at),
        }


class SaleItem(db.Model):
    """What was sold, at the price charged, decoupled from the catalog."""
    __tablename__ = "sale_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=True)
    description = db.Column(db.String(255), nullable=True)
    qty = db.Column(db.Integer, nullable=False)
    price_cents = db.Column(db.Integer, nullable=False)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else self.description,
            "qty": self.qty,
            "price": from_cents(self.price_cents),
            "subtotal": from_cents(self.price_cents * self.qty),
        }
