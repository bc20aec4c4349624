# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/caja/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Use: flask --app caja <group> <command> [options]
#
# System bootstrap/repair:
# - flask --app caja system init
#   Idempotent bootstrap: creates tables and one default user per role.
# - flask --app caja system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# User inspection/bootstrap:
# - flask --app caja users list
#   List all users with role and active status.
# - flask --app caja users create --email cajero2@caja.local --full-name "Ana" --password "Password123!" --role cajero
#   Create a user (prompts if options are omitted).
#
# Cash inspection:
# - flask --app caja cash status
#   Show the open cash session (if any) and its expected balance.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import User
from .models.auth import ROLES
from .services.auth_service import AuthError, PasswordValidationError, create_user
from .services import cash_service


DEFAULT_PASSWORD = "Password123!"

DEFAULT_USERS = (
    ("admin@caja.local", "Administrador", "admin"),
    ("cajero@caja.local", "Cajero", "cajero"),
    ("cocina@caja.local", "Cocina", "cocina"),
    ("mozo@caja.local", "Mozo", "mozo"),
)


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """
    Initialize the database and default users.

    Creates:
    - All tables (use `flask db upgrade` for managed deployments)
    - Users: admin@caja.local, cajero@caja.local, cocina@caja.local, mozo@caja.local
    - All passwords default to: "Password123!"

    SECURITY: Change passwords immediately in production!
    """
    click.echo("START Initializing caja...")
    db.create_all()

    for email, full_name, role in DEFAULT_USERS:
        if db.session.query(User).filter_by(email=email).first():
            click.echo(f"PASS User already exists: {email}")
            continue
        create_user(email=email, full_name=full_name, password=DEFAULT_PASSWORD, role=role)
        click.echo(f"PASS Created user: {email} ({role})")

    click.echo("")
    click.echo("DEFAULT CREDENTIALS:")
    for email, _, role in DEFAULT_USERS:
        click.echo(f"   {role:<7} -> {email:<20} / {DEFAULT_PASSWORD}")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete. Run 'flask --app caja system init' to initialize.")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--email', prompt=True, help='Email address (login)')
@click.option('--full-name', prompt=True, help='Display name')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(ROLES), prompt=True, help='Role')
@with_appcontext
def create_user_cli(email, full_name, password, role):
    """
    Create a new user.

    Password must meet strength requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character
    """
    try:
        user = create_user(email=email, full_name=full_name, password=password, role=role)
    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {str(e)}")
        click.echo("Requirements: 8+ chars, uppercase, lowercase, digit, special char")
        raise SystemExit(1)
    except AuthError as e:
        click.echo(f"FAIL Failed to create user: {e.code}")
        raise SystemExit(1)

    click.echo(f"PASS Created user: {user.email} with role '{user.role}' (ID: {user.id})")
    click.echo("SECURITY Password securely hashed with bcrypt")


@users_group.command('list')
@click.option('--role', type=click.Choice(ROLES), help='Filter by role')
@with_appcontext
def list_users(role):
    """List all users with their roles."""
    query = db.session.query(User)
    if role:
        query = query.filter_by(role=role)

    users = query.order_by(User.id).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<5} {'Email':<30} {'Name':<30} {'Role':<8} {'Active'}")
    click.echo("="*90)

    for user in users:
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.email:<30} {user.full_name:<30} {user.role:<8} {active_str}")

    click.echo("="*90 + "\n")


@click.group('cash')
def cash_group():
    """Cash session inspection commands."""


@cash_group.command('status')
@with_appcontext
def cash_status():
    """Show the open cash session and its expected drawer balance."""
    session = cash_service.get_current_session()
    if not session:
        click.echo("No cash session open.")
        return

    balance = cash_service.session_balance(session)
    click.echo(f"Session {session.id}  shift {session.shift_number} of {session.shift_date.isoformat()}")
    click.echo(f"  Opened by: {session.opener.full_name if session.opener else session.opened_by}")
    click.echo(f"  Opening:   {balance['opening_amount']:.2f}")
    click.echo(f"  Ingresos:  {balance['ingresos']:.2f}")
    click.echo(f"  Egresos:   {balance['egresos']:.2f}")
    click.echo(f"  Ventas:    {balance['ventas']:.2f} (efectivo {balance['ventas_efectivo']:.2f})")
    click.echo(f"  Expected:  {balance['expected_cash']:.2f}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(cash_group)
