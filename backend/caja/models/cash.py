from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z
from ..validation import from_cents


SESSION_OPEN = "open"
SESSION_CLOSED = "closed"

MOVEMENT_INFLOW = "ingreso"
MOVEMENT_OUTFLOW = "egreso"
MOVEMENT_SALE = "venta"
MOVEMENT_TYPES = (MOVEMENT_INFLOW, MOVEMENT_OUTFLOW, MOVEMENT_SALE)


class CashSession(db.Model):
    """
    One cash-drawer shift ("caja").

    LIFECYCLE:
    - open: drawer in use, orders and sales may be recorded against it
    - closed: counted, difference calculated (terminal)

    At most one session is open at a time. open_slot is 1 while the session
    is open and NULL once closed; its unique constraint lets the database
    reject a second open row even if two openers race past the service check.

    shift_number counts sessions per shift_date (server-local calendar day),
    starting at 1.
    """
    __tablename__ = "cash_sessions"
    __table_args__ = (
        db.UniqueConstraint("shift_date", "shift_number", name="uq_cash_sessions_day_shift"),
        db.UniqueConstraint("open_slot", name="uq_cash_sessions_open_slot"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    status = db.Column(db.String(16), nullable=False, default=SESSION_OPEN, index=True)
    open_slot = db.Column(db.Integer, nullable=True)

    shift_date = db.Column(db.Date, nullable=False, index=True)
    shift_number = db.Column(db.Integer, nullable=False)

    # Cash tracking (all amounts in cents)
    opening_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    closing_amount_cents = db.Column(db.Integer, nullable=True)
    difference_cents = db.Column(db.Integer, nullable=True)  # closing - opening

    opened_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    closed_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    opened_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    closed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    opener = db.relationship("User", foreign_keys=[opened_by])
    closer = db.relationship("User", foreign_keys=[closed_by])
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_open(self) -> bool:
        return self.status == SESSION_OPEN

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "status": self.status,
            "shift_date": self.shift_date.isoformat() if self.shift_date else None,
            "shift_number": self.shift_number,
            "opening_amount": from_cents(self.opening_amount_cents),
            "closing_amount": from_cents(self.closing_amount_cents),
            "difference": from_cents(self.difference_cents),
            "opened_by": self.opened_by,
            "closed_by": self.closed_by,
            "opened_by_name": self.opener.full_name if self.opener else None,
            "closed_by_name": self.closer.full_name if self.closer else None,
            "opened_at": to_utc_z(self.opened_at),
            "closed_at": to_utc_z(self.closed_at),
        }


class CashMovement(db.Model):
    """
    Append-only drawer ledger entry.

    TYPES:
    - ingreso: manual inflow (e.g. change fund top-up)
    - egreso: manual outflow (e.g. supplier payment)
    - venta: written by checkout in the same transaction as its Sale
    """
    __tablename__ = "cash_movements"
    __table_args__ = (
        db.Index("ix_cash_movements_session_type", "session_id", "type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    session_id = db.Column(db.Integer, db.ForeignKey("cash_sessions.id"), nullable=False, index=True)
    type = db.Column(db.String(16), nullable=False)
    amount_cents = db.Column(db.Integer, nullable=False)
    reference = db.Column(db.String(255), nullable=False, default="")

    # Set for venta movements
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=True, index=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    session = db.relationship("CashSession", backref=db.backref("movements", lazy=True))
    user = db.relationship("User")
    supplier = db.relationship("Supplier")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "session_id": self.session_id,
            "type": self.type,
            "amount": from_cents(self.amount_cents),
            "reference": self.reference,
            "sale_id": self.sale_id,
            "user_id": self.user_id,
            "user_name": self.user.full_name if self.user else None,
            "supplier_id": self.supplier_id,
            "supplier_name": self.supplier.razon_social if self.supplier else None,
            "created_at": to_utc_z(self.created_at),
        }


class NumberSequence(db.Model):
    """
    Scoped monotonic counters (shift numbers, order numbers, invoice numbers).

    WHY: max()+1 reads race under concurrent writers. Allocation is an
    atomic UPDATE on the (scope, key) row inside the same transaction as the
    insert that consumes the number, so a rollback also returns the number.
    """
    __tablename__ = "number_sequences"
    __table_args__ = (
        db.UniqueConstraint("scope", "key", name="uq_number_sequences_scope_key"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    scope = db.Column(db.String(32), nullable=False)
    key = db.Column(db.String(64), nullable=False)
    next_value = db.Column(db.Integer, nullable=False, default=1)
