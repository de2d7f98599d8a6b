# Overview: Flask CLI command groups for bootstrap, user administration, and maintenance.

# backend/viba/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--admin-email admin@viba.local --admin-password "Password123"]
#   Create all tables and optionally the first admin user (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask system seed-inventory --producto ribeye --cantidad 10
#   Insert available units directly (no purchase order).
#
# User inspection/bootstrap:
# - python -m flask users list
#   List all users with role and 2FA status.
# - python -m flask users create --email admin@viba.local --nombre Admin --password "Password123" --rol admin
#   Create a user (prompts if options are omitted).
# - python -m flask users reset-2fa someone@viba.local
#   Clear a user's TOTP secret so they enroll again on next login.
#
# Maintenance:
# - python -m flask maintenance cleanup-security-events --retention-days 90
#   Delete security events older than the retention window.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import User
from .models.auth import ROLES
from .repositories import InventoryRepository, UserRepository
from .services.auth_service import create_user, normalize_email
from .services import providers
from .services.errors import ServiceError, ValidationError
from .services.login_throttle_service import cleanup_security_events
from .services.sales_service import PRICE_TABLE


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--admin-email', help='Create this admin user if it does not exist')
@click.option('--admin-nombre', default='Administrador', show_default=True)
@click.option('--admin-password', help='Required with --admin-email')
@with_appcontext
def init_system(admin_email, admin_nombre, admin_password):
    """
    Create all tables and, optionally, the first admin user.

    Safe to run repeatedly: an existing admin is left untouched.
    """
    db.create_all()
    click.echo("PASS Schema ready.")

    if not admin_email:
        return

    users = UserRepository(db.session)
    if users.find_by_email(normalize_email(admin_email)) is not None:
        click.echo(f"SKIP Admin {normalize_email(admin_email)} already exists")
        return
    if not admin_password:
        admin_password = click.prompt('Admin password', hide_input=True, confirmation_prompt=True)

    try:
        user = create_user(users, admin_email, admin_nombre, admin_password, rol='admin')
        db.session.commit()
        click.echo(f"PASS Created admin: {user.email}")
    except ValidationError as e:
        db.session.rollback()
        click.echo(f"FAIL {e}")


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

    click.echo("PASS Database reset complete.")


@system_group.command('seed-inventory')
@click.option('--producto', type=click.Choice(sorted(PRICE_TABLE)), required=True)
@click.option('--cantidad', type=click.IntRange(min=1), required=True)
@with_appcontext
def seed_inventory(producto, cantidad):
    """Insert available units of a catalog product."""
    inserted = InventoryRepository(db.session).insert_units(producto, cantidad, "Carga inicial")
    db.session.commit()
    click.echo(f"PASS Inserted {inserted} units of {producto}.")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--email', prompt=True, help='Email address')
@click.option('--nombre', prompt=True, help='Display name')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--rol', type=click.Choice(ROLES), default='detallista', show_default=True, help='Role')
@with_appcontext
def create_user_cli(email, nombre, password, rol):
    """
    Create a new user.

    Password must meet strength requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    """
    try:
        user = create_user(UserRepository(db.session), email, nombre, password, rol=rol)
        db.session.commit()
        click.echo(f"PASS Created user: {user.email} with role '{user.rol}'")
        click.echo("     2FA will be enrolled on first login")
    except ValidationError as e:
        db.session.rollback()
        click.echo(f"FAIL {e}")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users."""
    users = db.session.query(User).order_by(User.id).all()
    if not users:
        click.echo("No users found.")
        return

    click.echo(f"{'ID':<5} {'Email':<32} {'Nombre':<20} {'Rol':<12} 2FA")
    for user in users:
        two_fa = "yes" if user.two_fa_enabled else "no"
        click.echo(f"{user.id:<5} {user.email:<32} {user.nombre:<20} {user.rol:<12} {two_fa}")


@users_group.command('reset-2fa')
@click.argument('email')
@with_appcontext
def reset_two_factor_cli(email):
    """Clear a user's TOTP secret."""
    try:
        providers.auth_flow().reset_totp(email, actor={"userId": "cli"})
        click.echo(f"PASS 2FA reset for {normalize_email(email)}")
    except ServiceError as e:
        click.echo(f"FAIL {e}")


@click.group('maintenance')
def maintenance_group():
    """Maintenance commands."""


@maintenance_group.command('cleanup-security-events')
@click.option('--retention-days', type=int, default=90, show_default=True)
@with_appcontext
def cleanup_security_events_cli(retention_days):
    """
    Cleanup old security events.

    Default retention: 90 days.
    """
    deleted = cleanup_security_events(db.session, retention_days=retention_days)
    click.echo(f"Deleted {deleted} security events older than {retention_days} days.")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(maintenance_group)
