# Overview: Flask CLI command groups for bootstrap, master-data seeding and reports.

# backend/backoffice/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to backoffice (PowerShell: $env:FLASK_APP="backoffice").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init-db
#   Create all tables that do not exist yet (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Master data (the upstream admin app owns these in production):
# - python -m flask catalog create-user --name "Ana" --email ana@example.com --role CASHIER
# - python -m flask catalog create-customer --name "PT Maju" [--email ...] [--phone ...]
# - python -m flask catalog create-unit --name pcs
# - python -m flask catalog create-product --name "Kopi 250g" [--type SELLABLE]
# - python -m flask catalog create-tax --name VAT --value 11
#
# Reports (JSON on stdout):
# - python -m flask reports finance --start 2024-01-01 --end 2024-01-31
# - python -m flask reports stock [--product-id 1]

import json

import click
from flask.cli import with_appcontext

from .extensions import db
from .services import catalog_service, finance_dashboard_service, inventory_service
from .time_utils import parse_iso_datetime
from .validation import ApiError


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables (idempotent). Use Flask-Migrate for schema changes on live databases."""
    db.create_all()
    click.echo("PASS Database tables created")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Confirm destructive reset')
@with_appcontext
def reset_db(yes):
    """DEV/TEST only: drop and recreate all tables."""
    if not yes:
        click.echo("FAIL Refusing to reset without --yes")
        raise SystemExit(1)
    db.drop_all()
    db.create_all()
    click.echo("PASS Database reset")


# =============================================================================
# CATALOG
# =============================================================================

@click.group('catalog')
def catalog_group():
    """Seed master data (users, customers, units, products, taxes)."""


def _run(action, label):
    try:
        row = action()
    except ApiError as exc:
        raise click.ClickException(f"{label} failed: {exc.message}")
    click.echo(f"PASS Created {label} (ID: {row.id})")
    return row


@catalog_group.command('create-user')
@click.option('--name', required=True)
@click.option('--email', required=True)
@click.option('--role', required=True, help='SUPER_ADMIN, ADMIN, WAREHOUSE_MANAGER or CASHIER')
@with_appcontext
def create_user_command(name, email, role):
    _run(lambda: catalog_service.create_user(name=name, email=email, role=role), f"user {email}")


@catalog_group.command('create-customer')
@click.option('--name', required=True)
@click.option('--email', default=None)
@click.option('--phone', default=None)
@click.option('--address', default=None)
@with_appcontext
def create_customer_command(name, email, phone, address):
    _run(
        lambda: catalog_service.create_customer(name=name, email=email, phone=phone, address=address),
        f"customer {name}",
    )


@catalog_group.command('create-unit')
@click.option('--name', required=True)
@click.option('--remark', default=None)
@with_appcontext
def create_unit_command(name, remark):
    _run(lambda: catalog_service.create_unit_quantity(name=name, remark=remark), f"unit {name}")


@catalog_group.command('create-product')
@click.option('--name', required=True)
@click.option('--type', 'product_type', default='SELLABLE', show_default=True)
@click.option('--description', default=None)
@with_appcontext
def create_product_command(name, product_type, description):
    _run(
        lambda: catalog_service.create_product(name=name, product_type=product_type, description=description),
        f"product {name}",
    )


@catalog_group.command('create-tax')
@click.option('--name', required=True)
@click.option('--value', required=True, help='Percentage, e.g. 11 for 11%')
@with_appcontext
def create_tax_command(name, value):
    _run(lambda: catalog_service.create_tax(name=name, value=value), f"tax {name}")


# =============================================================================
# REPORTS
# =============================================================================

@click.group('reports')
def reports_group():
    """Print reports as JSON."""


@reports_group.command('finance')
@click.option('--start', default=None, help='ISO date or datetime (inclusive)')
@click.option('--end', default=None, help='ISO date or datetime (inclusive; a date covers the whole day)')
@with_appcontext
def finance_report(start, end):
    try:
        start_dt = parse_iso_datetime(start)
        end_dt = parse_iso_datetime(end, end_of_day=True)
    except ValueError:
        raise click.BadParameter("dates must be ISO dates or datetimes")
    dashboard = finance_dashboard_service.get_finance_dashboard(start_dt, end_dt)
    click.echo(json.dumps(dashboard.to_dict(), indent=2))


@reports_group.command('stock')
@click.option('--product-id', type=int, default=None)
@with_appcontext
def stock_report(product_id):
    try:
        summary = inventory_service.get_inventory_summary(product_id)
    except ApiError as exc:
        raise click.ClickException(exc.message)
    click.echo(json.dumps(summary, indent=2))


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(catalog_group)
    app.cli.add_command(reports_group)
