from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z
from ..validation import from_cents


class Product(db.Model):
    """Catalog product. Sales snapshot the price, so edits never touch history."""
    __tablename__ = "products"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    sku = db.Column(db.String(40), nullable=True, unique=True)
    price_cents = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "sku": self.sku,
            "price": from_cents(self.price_cents),
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class Customer(db.Model):
    """
    Invoice recipient.

    condicion_iva: RI (Responsable Inscripto), CF (Consumidor Final),
    MT (Monotributo), EX (Exento). Type A invoices require RI.
    """
    __tablename__ = "customers"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    razon_social = db.Column(db.String(160), nullable=True)
    nombre = db.Column(db.String(80), nullable=True)
    apellido = db.Column(db.String(80), nullable=True)
    tipo_documento = db.Column(db.String(8), nullable=False, default="DNI")
    numero_documento = db.Column(db.String(20), nullable=True, unique=True)
    direccion = db.Column(db.String(200), nullable=True)
    condicion_iva = db.Column(db.String(4), nullable=False, default="CF")
    email = db.Column(db.String(120), nullable=True)
    telefono = db.Column(db.String(40), nullable=True)
    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    @property
    def display_name(self) -> str | None:
        if self.razon_social:
            return self.razon_social
        full = f"{self.nombre or ''} {self.apellido or ''}".strip()
        return full or None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "razon_social": self.razon_social,
            "nombre": self.nombre,
            "apellido": self.apellido,
            "tipo_documento": self.tipo_documento,
            "numero_documento": self.numero_documento,
            "direccion": self.direccion,
            "condicion_iva": self.condicion_iva,
            "email": self.email,
            "telefono": self.telefono,
            "created_at": to_utc_z(self.created_at),
        }


class Supplier(db.Model):
    """Supplier; manual cash outflows may reference one."""
    __tablename__ = "suppliers"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    razon_social = db.Column(db.String(160), nullable=False)
    cuit = db.Column(db.String(20), nullable=False, unique=True)
    condicion_iva = db.Column(db.String(4), nullable=True)
    telefono = db.Column(db.String(40), nullable=True)
    email = db.Column(db.String(120), nullable=True)
    direccion = db.Column(db.String(200), nullable=True)
    contacto = db.Column(db.String(120), nullable=True)
    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "razon_social": self.razon_social,
            "cuit": self.cuit,
            "condicion_iva": self.condicion_iva,
            "telefono": self.telefono,
            "email": self.email,
            "direccion": self.direccion,
            "contacto": self.contacto,
            "created_at": to_utc_z(self.created_at),
        }


class Employee(db.Model):
    __tablename__ = "employees"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    nombre = db.Column(db.String(80), nullable=False)
    apellido = db.Column(db.String(80), nullable=False)
    dni = db.Column(db.String(20), nullable=False, unique=True)
    puesto = db.Column(db.String(80), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "nombre": self.nombre,
            "apellido": self.apellido,
            "dni": self.dni,
            "puesto": self.puesto,
        }
