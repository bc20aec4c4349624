from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z
from ..validation import from_cents


ORDER_OPEN = "open"
ORDER_CLOSED = "closed"

PREP_UNSTARTED = "unstarted"
PREP_IN_PROGRESS = "in_progress"
PREP_DONE = "done"

# Forward-only kitchen progress
PREP_SEQUENCE = (PREP_UNSTARTED, PREP_IN_PROGRESS, PREP_DONE)


class Order(db.Model):
    """
    Customer order prior to payment.

    status (open -> closed) is payment state; closed is only ever set by
    checkout. prep_status (unstarted -> in_progress -> done) is kitchen
    state and moves forward only.

    was_modified flags an item edit the kitchen has not acknowledged yet.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.UniqueConstraint("cash_session_id", "order_number", name="uq_orders_session_number"),
        db.Index("ix_orders_session_status", "cash_session_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    cash_session_id = db.Column(db.Integer, db.ForeignKey("cash_sessions.id"), nullable=False, index=True)
    order_number = db.Column(db.Integer, nullable=False)

    status = db.Column(db.String(16), nullable=False, default=ORDER_OPEN)
    prep_status = db.Column(db.String(16), nullable=False, default=PREP_UNSTARTED)

    total_cents = db.Column(db.Integer, nullable=False, default=0)

    was_modified = db.Column(db.Boolean, nullable=False, default=False)
    items_updated_at = db.Column(db.DateTime(timezone=True), nullable=True)

    prep_started_at = db.Column(db.DateTime(timezone=True), nullable=True)
    prep_done_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True)
    closed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    cash_session = db.relationship("CashSession", backref=db.backref("orders", lazy=True))
    items = db.relationship(
        "OrderItem",
        backref="order",
        lazy=True,
        order_by="OrderItem.id",
        cascade="all, delete-orphan",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "cash_session_id": self.cash_session_id,
            "order_number": self.order_number,
            "status": self.status,
            "prep_status": self.prep_status,
            "total": from_cents(self.total_cents),
            "was_modified": self.was_modified,
            "items_updated_at": to_utc_z(self.items_updated_at),
            "prep_started_at": to_utc_z(self.prep_started_at),
            "prep_done_at": to_utc_z(self.prep_done_at),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "closed_at": to_utc_z(self.closed_at),
        }


class OrderItem(db.Model):
    """Order line. The whole set is replaced on edit, never diffed."""
    __tablename__ = "order_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=True)
    description = db.Column(db.String(255), nullable=False, default="")
    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    total_cents = db.Column(db.Integer, nullable=False)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "description": self.description,
            "quantity": self.quantity,
            "unit_price": from_cents(self.unit_price_cents),
            "total": from_cents(self.total_cents),
        }
