# Overview: Flask CLI command groups for bootstrap, catalog and membership maintenance.

# backend/storefront/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Create any missing tables (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Catalog:
# - python -m flask products seed
#   Insert the demo catalog (skips products that already exist by name).
# - python -m flask products clear --yes
#   Delete every product.
#
# Membership:
# - python -m flask members list [--status approved]
#   List membership applications with their member numbers.

import click
from flask.cli import with_appcontext

from .extensions import db
from .services import catalog_service, membership_service
from .validation import ValidationError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """Create database tables that do not exist yet."""
    click.echo("START Initializing storefront database...")
    db.create_all()
    click.echo("PASS Tables ready. Run 'python -m flask products seed' to load the demo catalog.")


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


@click.group('products')
def products_group():
    """Catalog maintenance commands."""


@products_group.command('seed')
@with_appcontext
def seed_products():
    """Load the demo catalog."""
    created = catalog_service.seed_products()
    click.echo(f"PASS Created {created} products")


@products_group.command('clear')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def clear_products(yes):
    """Delete every product in the catalog."""
    if not yes:
        click.confirm("WARN This will delete every product. Are you sure?", abort=True)
    deleted = catalog_service.clear_products()
    click.echo(f"PASS Deleted {deleted} products")


@click.group('members')
def members_group():
    """Membership inspection commands."""


@members_group.command('list')
@click.option('--status', help='Filter by status (pending, approved, rejected)')
@with_appcontext
def list_members(status):
    """List membership applications."""
    try:
        applications = membership_service.list_applications(status=status)
    except ValidationError as e:
        raise click.BadParameter(str(e), param_hint="--status")

    if not applications:
        click.echo("No membership applications found.")
        return

    click.echo("\n" + "=" * 90)
    click.echo(f"{'ID':<6} {'Name':<28} {'Email':<30} {'Status':<10} {'Member #':<14}")
    click.echo("-" * 90)
    for a in applications:
        name = f"{a.first_name} {a.last_name}"
        click.echo(f"{a.id:<6} {name[:27]:<28} {a.email[:29]:<30} {a.status:<10} {a.member_number or '-':<14}")
    click.echo("=" * 90 + "\n")


def register_commands(app):
    app.cli.add_command(system_group)
    app.cli.add_command(products_group)
    app.cli.add_command(members_group)
