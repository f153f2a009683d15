# Overview: Flask CLI command groups for bootstrap, demo data, and report inspection.

# backend/warehouse_edge/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create any missing tables (safe to re-run).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Demo data:
# - python -m flask seed demo
#   Load the demo warehouses, categories, products, users, ledger, requests
#   and low-stock notification rules.
#
# Report inspection:
# - python -m flask reports low-stock [--warehouse-id wh1] [--category Electronics]
#   Print products at or below reorder level, or flagged Low Stock / Out of Stock.
# - python -m flask reports movements --start 2024-07-01 --end 2024-07-31
#   Print inflow / outflow / damaged / returned totals for a window.

import click
from datetime import timedelta
from flask.cli import with_appcontext

from .extensions import db
from .models import (
    Category,
    InventoryTransaction,
    MaterialRequest,
    MaterialRequestItem,
    NotificationSetting,
    Product,
    User,
    Warehouse,
)
from .services import reporting_service
from .services.reporting_service import ReportError
from .time_utils import utcnow


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database tables ready.")


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

    click.echo("PASS Database reset complete. Run 'python -m flask seed demo' to load demo data.")


DEMO_WAREHOUSES = [
    ("wh1", "Main Warehouse", "Building A"),
    ("wh2", "Textile Storage", "Building B, Section 2"),
    ("wh3", "Metalworks Bay", "Building C"),
    ("wh4", "Shipping Hub", "Building A, Dock 5"),
    ("wh5", "Cold Storage", "Building D"),
]

DEMO_CATEGORIES = [
    ("cat1", "Electronics", "Electronic components and devices."),
    ("cat2", "Raw Materials", "Materials used in production."),
    ("cat3", "Finished Goods", "Products ready for sale."),
    ("cat4", "Office Supplies", "Items for office use."),
    ("cat5", "Perishables", "Goods with limited shelf life."),
    ("cat6", "Hardware Components", "Small hardware parts like screws, bolts."),
    ("cat7", "Plastic Components", "Molded plastic parts."),
]

# (id, name, sku, category, quantity, reorder_level, warehouse, status, days_since_update, description)
DEMO_PRODUCTS = [
    ("prod1", "Alpha-Core Processor", "AC-P-001", "Electronics", 150, 50, "wh1", "Available", 2,
     "High-performance processor for advanced computing."),
    ("prod2", "Beta-Series RAM Module (16GB)", "BS-RM-016", "Electronics", 35, 25, "wh1", "Low Stock", 1,
     "16GB DDR5 RAM module for desktops."),
    ("prod3", "Gamma Fabric Roll (Blue)", "GF-R-BLU", "Raw Materials", 0, 100, "wh2", "Out of Stock", 5,
     "High-quality blue fabric for apparel manufacturing."),
    ("prod4", "Delta-Grade Steel Plate", "DG-SP-005", "Raw Materials", 5, 10, "wh3", "Damaged", 3,
     "5mm thick steel plates, some reported as bent."),
    ("prod5", "Standard Assembled Widget", "SAW-001", "Finished Goods", 500, 100, "wh4", "Available", 0,
     "Standard widget, assembled and packaged."),
    ("prod6", "Organic Apples", "ORG-APP-001", "Perishables", 200, 50, "wh5", "Available", 0.5,
     "Fresh organic apples, requires temperature control."),
    ("prod7", "M3 Screw Pack (100 units)", "HW-SCR-M3-100", "Hardware Components", 1000, 200, "wh3", "Available", 0,
     "Pack of 100 M3 screws."),
    ("prod8", "Standard Plastic Casing", "PL-CAS-STD-01", "Plastic Components", 300, 50, "wh1", "Available", 0,
     "Standard plastic casing for small devices."),
    ("prod9", "Advanced Gadget X", "FG-ADVGX-001", "Finished Goods", 75, 20, "wh4", "Available", 0,
     "Deluxe assembled gadget with multiple components."),
]

DEMO_USERS = [
    ("user1", "Alice Admin", "admin@example.com", "Admin", None),
    ("user2", "Bob Manager", "manager@example.com", "WarehouseManager", None),
    ("user3", "Charlie Tech", "charlie@example.com", "DepartmentEmployee", "Electronics"),
    ("user4", "Diana Fabric", "diana@example.com", "DepartmentEmployee", "Raw Materials"),
    ("user5", "Edward Goods", "edward@example.com", "DepartmentEmployee", "Finished Goods"),
    ("user6", "Fiona Food", "fiona@example.com", "DepartmentEmployee", "Perishables"),
]

# (id, product, threshold, recipient, channel, enabled)
DEMO_NOTIFICATION_SETTINGS = [
    ("notif1", "prod1", 55, "manager@example.com", "email", True),
    ("notif2", "prod2", 30, "admin@example.com", "in-app", True),
    ("notif3", "prod7", 250, "supervisor_hw@example.com", "email", False),
]

# (id, product, type, change, days_ago, user, reason, warehouse)
DEMO_TRANSACTIONS = [
    ("txn1", "prod1", "Inflow", 100, 7, "Supplier XYZ", "New Stock Arrival", "wh1"),
    ("txn2", "prod2", "Initial", 50, 30, "System", "Initial system setup", "wh1"),
    ("txn3", "prod1", "Outflow", -20, 3, "Assembly Line A", "Production Order #123", "wh1"),
    ("txn4", "prod3", "Damage", -5, 6, "Warehouse Inspection", "Water damage", "wh2"),
    ("txn5", "prod5", "Inflow", 200, 1, "Production Line B", "New batch completed", "wh4"),
    ("txn6", "prod2", "Outflow", -15, 2, "Sales Order #SO456", "Customer Sale", "wh1"),
    ("txn7", "prod6", "Inflow", 250, 2, "Farm Fresh Deliveries", "Weekly shipment", "wh5"),
    ("txn8", "prod6", "Outflow", -50, 1, "Local Market Stall", "Daily sale", "wh5"),
]


def _seed_requests(now):
    by_id = {p.id: p for p in db.session.query(Product).all()}
    users = {u.id: u for u in db.session.query(User).all()}

    def item(product_id, quantity):
        return MaterialRequestItem(
            position=0,
            product_id=product_id,
            product_name=by_id[product_id].name,
            quantity=quantity,
        )

    return [
        MaterialRequest(
            id="mr001",
            requester_id="user3",
            requester_name=users["user3"].name,
            department_category="Electronics",
            items=[item("prod1", 20)],
            reason_for_request="Project Tesla - Phase 1",
            requested_date=now + timedelta(days=7),
            submission_date=now,
            status="Pending",
        ),
        MaterialRequest(
            id="mr002",
            requester_id="user4",
            requester_name=users["user4"].name,
            department_category="Raw Materials",
            items=[item("prod3", 5)],
            reason_for_request="New clothing line samples",
            requested_date=now + timedelta(days=3),
            submission_date=now - timedelta(days=1),
            status="Approved",
            approver_id="user2",
            approver_name=users["user2"].name,
            action_date=now,
        ),
        MaterialRequest(
            id="mr003",
            requester_id="user3",
            requester_name=users["user3"].name,
            department_category="Electronics",
            items=[item("prod2", 50)],
            reason_for_request="Urgent restock for server maintenance",
            requested_date=now + timedelta(days=1),
            submission_date=now - timedelta(days=2),
            status="Rejected",
            approver_id="user2",
            approver_name=users["user2"].name,
            approver_notes=(
                "Stock level too low for this quantity. "
                "Please request a smaller amount or wait for restock."
            ),
            action_date=now - timedelta(days=1),
        ),
    ]


@click.group('seed')
def seed_group():
    """Demo data commands."""


@seed_group.command('demo')
@with_appcontext
def seed_demo():
    """
    Load demo data into an empty database.

    Products are written with their on-hand quantities directly and the
    ledger lines are loaded as history; the demo ledger is illustrative and
    does not reconcile with on-hand.
    """
    db.create_all()
    if db.session.query(Product).count() or db.session.query(User).count():
        raise click.ClickException("Database is not empty; run 'system reset-db --yes' first.")

    now = utcnow()

    for wh_id, name, location in DEMO_WAREHOUSES:
        db.session.add(Warehouse(id=wh_id, name=name, location=location))
    for cat_id, name, description in DEMO_CATEGORIES:
        db.session.add(Category(id=cat_id, name=name, description=description))
    db.session.flush()

    for (prod_id, name, sku, category, quantity, reorder_level,
         warehouse_id, status, days, description) in DEMO_PRODUCTS:
        db.session.add(Product(
            id=prod_id,
            name=name,
            sku=sku,
            category=category,
            quantity=quantity,
            reorder_level=reorder_level,
            warehouse_id=warehouse_id,
            status=status,
            last_updated=now - timedelta(days=days),
            description=description,
        ))
    for user_id, name, email, role, category_access in DEMO_USERS:
        db.session.add(User(id=user_id, name=name, email=email, role=role, category_access=category_access))
    db.session.flush()

    names = {p.id: p.name for p in db.session.query(Product).all()}
    for tx_id, product_id, tx_type, change, days, user, reason, warehouse_id in DEMO_TRANSACTIONS:
        db.session.add(InventoryTransaction(
            id=tx_id,
            product_id=product_id,
            product_name=names[product_id],
            type=tx_type,
            quantity_change=change,
            occurred_at=now - timedelta(days=days),
            user=user,
            reason=reason,
            warehouse_id=warehouse_id,
        ))

    for req in _seed_requests(now):
        db.session.add(req)
    for notif_id, product_id, threshold, recipient, channel, enabled in DEMO_NOTIFICATION_SETTINGS:
        db.session.add(NotificationSetting(
            id=notif_id,
            product_id=product_id,
            threshold=threshold,
            recipient=recipient,
            channel=channel,
            is_enabled=enabled,
        ))

    db.session.commit()
    click.echo(
        f"PASS Seeded {len(DEMO_WAREHOUSES)} warehouses, {len(DEMO_PRODUCTS)} products, "
        f"{len(DEMO_USERS)} users, {len(DEMO_TRANSACTIONS)} transactions, 3 material requests, "
        f"{len(DEMO_NOTIFICATION_SETTINGS)} notification rules."
    )


@click.group('reports')
def reports_group():
    """Report inspection commands."""


@reports_group.command('low-stock')
@click.option('--warehouse-id', default=None, help='Only this warehouse')
@click.option('--category', default=None, help='Only this category')
@with_appcontext
def low_stock(warehouse_id, category):
    """List products needing attention."""
    report = reporting_service.low_stock_report(warehouse_id=warehouse_id, category=category)
    if not report["rows"]:
        click.echo("No low-stock products.")
        return

    click.echo(f"{'SKU':<16} {'Name':<32} {'Qty':>6} {'Reorder':>8} {'Short':>6}  Status")
    click.echo("-" * 86)
    for row in report["rows"]:
        click.echo(
            f"{row['sku']:<16} {row['name'][:32]:<32} {row['quantity']:>6} "
            f"{row['reorder_level']:>8} {row['shortfall']:>6}  {row['status']}"
        )
    click.echo(f"\n{report['count']} product(s)")


@reports_group.command('movements')
@click.option('--start', default=None, help='ISO date or datetime (inclusive)')
@click.option('--end', default=None, help='ISO date or datetime (inclusive; a date covers the whole day)')
@click.option('--product-id', default=None)
@click.option('--warehouse-id', default=None)
@with_appcontext
def movements(start, end, product_id, warehouse_id):
    """Inflow / outflow / damaged / returned totals for a window."""
    try:
        report = reporting_service.movement_report(
            start=start, end=end, product_id=product_id, warehouse_id=warehouse_id
        )
    except ReportError as e:
        raise click.BadParameter(str(e))

    click.echo(f"Window: {report['start'] or '-'} .. {report['end'] or '-'}")
    for label, summary in report["stats"].items():
        click.echo(
            f"  {label:<9} qty={summary['total_quantity']:<8} "
            f"lines={summary['transaction_count']:<5} products={summary['distinct_products']}"
        )
    total = report["total"]
    click.echo(
        f"  {'all':<9} qty={total['total_quantity']:<8} "
        f"lines={total['transaction_count']:<5} products={total['distinct_products']}"
    )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(seed_group)
    app.cli.add_command(reports_group)
