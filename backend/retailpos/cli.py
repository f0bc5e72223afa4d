# Overview: Flask CLI command group for database bootstrap, demo data and reorder reporting.

# backend/retailpos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask pos <command> [options]
#
# - python -m flask pos init-db
#   Create all tables that do not exist yet (use `flask db upgrade` for migrations).
# - python -m flask pos reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask pos seed-demo
#   Idempotent demo catalog: two vendors, a handful of stocked products.
# - python -m flask pos reorder-report
#   Print reorder suggestions grouped by vendor.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Product, Vendor
from .services import products_service, reorder_service, vendor_service


CLI_ACTOR = "cli"

DEMO_VENDORS = [
    {"code": "ACME", "name": "Acme Wholesale", "contact_name": "Dana Reyes"},
    {"code": "NORTH", "name": "Northwind Supply", "contact_name": "Sam Ortiz"},
]

DEMO_PRODUCTS = [
    # sku, name, price_cents, initial_quantity, reorder_level, reorder_quantity, vendor code
    ("MOUSE-001", "Wireless Mouse", 2499, 40, 10, 50, "ACME"),
    ("KEYB-001", "Mechanical Keyboard", 8999, 4, 5, 20, "ACME"),
    ("CABLE-USB", "USB-C Cable 1m", 999, 0, 25, 100, "NORTH"),
    ("HDMI-2M", "HDMI Cable 2m", 1499, 30, 10, 40, "NORTH"),
    ("PAD-XL", "Desk Mat XL", 1999, 12, 3, 10, None),
]


@click.group('pos')
def pos_group():
    """Retail POS database and inventory commands."""


@pos_group.command('init-db')
@with_appcontext
def init_db():
    """Create missing tables."""
    db.create_all()
    click.echo("PASS Tables created.")


@pos_group.command('reset-db')
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

    click.echo("PASS Database reset complete. Run 'python -m flask pos seed-demo' for sample data.")


@pos_group.command('seed-demo')
@with_appcontext
def seed_demo():
    """Create demo vendors and products (skips anything that already exists)."""
    vendors = {}
    for row in DEMO_VENDORS:
        vendor = db.session.query(Vendor).filter_by(code=row["code"]).first()
        if vendor is None:
            vendor = vendor_service.create_vendor(**row)
            click.echo(f"  + vendor {vendor.code} ({vendor.name})")
        vendors[row["code"]] = vendor.id

    for sku, name, price, qty, level, reorder_qty, vendor_code in DEMO_PRODUCTS:
        if db.session.query(Product.id).filter_by(sku=sku).first():
            continue
        products_service.create_product(
            {
                "sku": sku,
                "name": name,
                "price_cents": price,
                "reorder_level": level,
                "reorder_quantity": reorder_qty,
                "vendor_id": vendors.get(vendor_code),
                "initial_quantity": qty,
            },
            CLI_ACTOR,
        )
        click.echo(f"  + product {sku} qty={qty}")

    click.echo("PASS Demo data ready.")


@pos_group.command('reorder-report')
@with_appcontext
def reorder_report():
    """Print reorder suggestions grouped by vendor."""
    groups = reorder_service.get_reorder_suggestions()
    if not groups:
        click.echo("No products need reordering.")
        return

    for group in groups:
        click.echo(
            f"{group['vendor_name']} (vendor {group['vendor_id']}): "
            f"{group['total_items']} unit(s), est. ${group['estimated_total_cents'] / 100:,.2f}"
        )
        for item in group["products"]:
            click.echo(
                f"  {item['sku']:<12} {item['product_name']:<28} "
                f"on hand {item['quantity_in_stock']:>4} / level {item['reorder_level']:>4} "
                f"-> order {item['reorder_quantity']} @ {item['unit_cost_cents']}c"
            )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(pos_group)
