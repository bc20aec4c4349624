"""CLI command tests."""

from caja.extensions import db
from caja.models import User


def test_system_init_is_idempotent(app):
    runner = app.test_cli_runner()

    result = runner.invoke(args=["system", "init"])
    assert result.exit_code == 0
    assert "PASS Created user: cajero@caja.local (cajero)" in result.output
    assert db.session.query(User).count() == 4

    result = runner.invoke(args=["system", "init"])
    assert result.exit_code == 0
    assert "PASS User already exists: admin@caja.local" in result.output
    assert db.session.query(User).count() == 4


def test_users_list_filters_by_role(app, users):
    result = app.test_cli_runner().invoke(args=["users", "list", "--role", "cocina"])
    assert result.exit_code == 0
    assert "cocina@caja.test" in result.output
    assert "cajero@caja.test" not in result.output


def test_users_create_rejects_weak_password(app):
    result = app.test_cli_runner().invoke(args=[
        "users", "create",
        "--email", "nuevo@caja.test",
        "--full-name", "Nuevo",
        "--password", "short",
        "--role", "mozo",
    ])
    assert result.exit_code == 1
    assert "Password validation failed" in result.output
    assert db.session.query(User).count() == 0


def test_cash_status(app, open_session):
    result = app.test_cli_runner().invoke(args=["cash", "status"])
    assert result.exit_code == 0
    assert f"Session {open_session.id}  shift 1" in result.output
    assert "Expected:  100.00" in result.output


def test_cash_status_without_session(app):
    result = app.test_cli_runner().invoke(args=["cash", "status"])
    assert "No cash session open." in result.output
