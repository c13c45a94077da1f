# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/spa_pos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Idempotent bootstrap: creates tables and the default admin/staff users.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# User inspection/bootstrap:
# - python -m flask users list
#   List all users with role and active status.
# - python -m flask users create --username maria --password "Password123!" --role staff
#   Create a user (prompts if options are omitted).
#
# Inventory:
# - python -m flask items seed
#   Create the starter consumables; initial stock is booked as received adjustments.

import click
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .errors import LedgerError
from .models import User, InventoryItem
from .services.auth_service import create_user, find_user, PasswordValidationError
from .services.identity_service import Identity, Role
from .services.ledgers import inventory_ledger


DEFAULT_PASSWORD = "Password123!"

STARTER_ITEMS = [
    # (sku, name, category, reorder_level, initial_qty)
    ("OIL-LAV-1L", "Lavender massage oil (1L)", "oil", 2, 6),
    ("OIL-COCO-1L", "Virgin coconut oil (1L)", "oil", 2, 6),
    ("TWL-BATH", "Bath towel", "towel", 10, 40),
    ("TWL-FACE", "Face towel", "towel", 20, 80),
    ("DSP-BRIEF", "Disposable briefs", "disposable", 50, 200),
    ("DSP-SLIPPER", "Disposable slippers", "disposable", 30, 100),
    ("DRK-TEA", "Ginger tea sachet", "drink", 40, 150),
    ("DRK-WATER", "Bottled water", "drink", 24, 96),
]


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """
    Initialize the spa POS: schema plus default users.

    Creates:
    - All tables (if missing)
    - Users: admin (admin), staff (staff)
    - All passwords default to: "Password123!"

    SECURITY: Change passwords immediately in production!
    """
    click.echo("START Initializing spa POS...")

    db.create_all()
    click.echo("PASS Tables ready")

    for username, role in (("admin", Role.ADMIN.value), ("staff", Role.STAFF.value)):
        existing = find_user(username)
        if existing:
            click.echo(f"PASS User already exists: {username} ({existing.role})")
            continue
        create_user(username=username, password=DEFAULT_PASSWORD, role=role)
        click.echo(f"PASS Created user: {username} ({role})")

    click.echo("")
    click.echo("DONE Spa POS initialized. Default logins:")
    click.echo(f"   admin -> {DEFAULT_PASSWORD}")
    click.echo(f"   staff -> {DEFAULT_PASSWORD}")


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

    click.echo("PASS Database reset complete. Run 'python -m flask system init' to initialize.")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice([r.value for r in Role]), prompt=True, help='Role')
@with_appcontext
def create_user_cli(username, password, role):
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
        user = create_user(username=username, password=password, role=role)
        click.echo(f"PASS Created user: {user.username} with role '{user.role}'")
        click.echo("SECURITY Password securely hashed with bcrypt")

    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {str(e)}")
        click.echo("Requirements: 8+ chars, uppercase, lowercase, digit, special char")
    except LedgerError as e:
        db.session.rollback()
        click.echo(f"FAIL Failed to create user: {e.message}")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users with their roles."""
    users = db.session.query(User).order_by(User.id.asc()).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*60)
    click.echo(f"{'ID':<5} {'Username':<20} {'Role':<8} {'Active':<8}")
    click.echo("="*60)

    for user in users:
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.username:<20} {user.role:<8} {active_str:<8}")

    click.echo("="*60 + "\n")


@click.group('items')
def items_group():
    """Inventory bootstrap commands."""


@items_group.command('seed')
@click.option('--username', default='admin', help='Admin account the stock is attributed to')
@with_appcontext
def seed_items(username):
    """Create the starter consumables (skips SKUs that already exist)."""
    admin = db.session.query(User).filter_by(username=username).first()
    if not admin or admin.role != Role.ADMIN.value:
        click.echo(f"FAIL '{username}' is not an admin. Run 'python -m flask system init' first.")
        return

    actor = Identity(actor_id=admin.id, role=Role.ADMIN, username=admin.username)
    ledger = inventory_ledger()

    created = 0
    for sku, name, category, reorder_level, initial_qty in STARTER_ITEMS:
        if db.session.query(InventoryItem.id).filter_by(sku=sku).first():
            click.echo(f"SKIP {sku} already exists")
            continue
        try:
            item = ledger.create_item(
                actor=actor,
                name=name,
                sku=sku,
                category=category,
                reorder_level=reorder_level,
                quantity_on_hand=initial_qty,
            )
        except LedgerError as e:
            db.session.rollback()
            current_app.logger.warning("Seeding %s failed: %s", sku, e.message)
            click.echo(f"FAIL {sku}: {e.message}")
            continue
        created += 1
        click.echo(f"PASS {item.sku:<12} {item.name:<30} on hand {item.quantity_on_hand}")

    click.echo(f"DONE Seeded {created} item(s)")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(items_group)
