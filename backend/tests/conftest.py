"""
Pytest fixtures for caja backend tests.

Each test gets a fresh application on an in-memory SQLite database, one user
per role, and bearer headers for each of them.
"""

import pytest

from caja import create_app
from caja.extensions import db
from caja.models import Customer, Product, Supplier
from caja.services import cash_service, order_service, session_service
from caja.services.auth_service import create_user


TEST_PASSWORD = "Password123!"


def make_app(database_uri: str = "sqlite://", **overrides):
    config = {
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": database_uri,
        "BCRYPT_ROUNDS": 4,
        "CAJA_LOG_LEVEL": "WARNING",
    }
    config.update(overrides)
    return create_app(config)


@pytest.fixture(scope='function')
def app():
    """Create application for testing."""
    app = make_app()

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def users(app):
    """One active user per role, keyed by role name."""
    return {
        role: create_user(
            email=f"{role}@caja.test",
            full_name=f"{role.title()} Test",
            password=TEST_PASSWORD,
            role=role,
        )
        for role in ("admin", "cajero", "cocina", "mozo")
    }


@pytest.fixture(scope='function')
def cashier(users):
    return users["cajero"]


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def headers(users):
    """Bearer headers per role."""
    result = {}
    for role, user in users.items():
        _, token = session_service.create_session(user.id)
        result[role] = auth_headers(token)
    return result


@pytest.fixture(scope='function')
def open_session(cashier):
    """An open cash session with a 100.00 float."""
    session = cash_service.open_session(cashier.id)
    cash_service.record_opening_amount(session.id, 100)
    return session


@pytest.fixture(scope='function')
def burger_order(open_session):
    """Open order: 2 x Burger at 10.00."""
    return order_service.create_order(
        open_session.id,
        [{"product_id": None, "description": "Burger", "quantity": 2, "unit_price": 10, "total": 20}],
        20,
    )


@pytest.fixture(scope='function')
def products(app):
    burger = Product(name="Burger", sku="BURGER", price_cents=1000, is_active=True)
    fries = Product(name="Papas fritas", sku="FRIES", price_cents=450, is_active=True)
    retired = Product(name="Old combo", sku="OLD", price_cents=9900, is_active=False)
    db.session.add_all([burger, fries, retired])
    db.session.commit()
    return {"burger": burger, "fries": fries, "retired": retired}


@pytest.fixture(scope='function')
def customers(app):
    ri = Customer(
        razon_social="Distribuidora Sur SRL",
        tipo_documento="CUIT",
        numero_documento="30712345678",
        direccion="Av. Siempre Viva 742",
        condicion_iva="RI",
    )
    cf = Customer(
        nombre="Juan",
        apellido="Perez",
        tipo_documento="DNI",
        numero_documento="28111222",
        condicion_iva="CF",
    )
    db.session.add_all([ri, cf])
    db.session.commit()
    return {"ri": ri, "cf": cf}


@pytest.fixture(scope='function')
def supplier(app):
    supplier = Supplier(razon_social="Panaderia La Espiga", cuit="20111222333")
    db.session.add(supplier)
    db.session.commit()
    return supplier
