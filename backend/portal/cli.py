# Overview: Flask CLI command groups for bootstrap and order inspection.

# backend/portal/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask portal init-db
#   Create all tables (use flask db upgrade for migrated deployments).
# - python -m flask portal seed
#   Idempotent demo data: one user per role and a small product catalog.
# - python -m flask portal reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Order inspection:
# - python -m flask orders show BEST-20240314-0042
#   Print an order's status, approvals and full status history.
# - python -m flask orders transitions
#   Print the transition table with the roles allowed to drive each target.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Order, Product, Role, User
from .permissions import ROLE_TARGET_STATUSES
from .services.lifecycle_service import ALLOWED_TRANSITIONS, STATUS_LABELS


DEMO_USERS = [
    ("user@bund.de", "Test User", Role.REQUESTER, "CC-001", "Marketing"),
    ("it@bund.de", "IT Support", Role.IT_SUPPORT, "IT-001", "IT"),
    ("reception@bund.de", "Reception Support", Role.EMPFANG, "RCP-001", "Reception"),
    ("manager@bund.de", "Department Manager", Role.APPROVER, "CC-001", "Marketing"),
    ("admin@bund.de", "System Admin", Role.ADMIN, "ADM-001", "IT"),
]

# (name, category, model, requires_approval, responsible_role)
DEMO_PRODUCTS = [
    ("Logitech C270 HD-Webcam", "WEBCAM", "C270", False, Role.IT_SUPPORT),
    ("Jabra Evolve2 65 (Bluetooth)", "HEADSET", "Evolve2 65", False, Role.IT_SUPPORT),
    ("Jabra Evolve2 40 (Wired)", "HEADSET", "Evolve2 40", False, Role.IT_SUPPORT),
    ("Cherry GENTIX Silent Mouse", "MOUSE", "GENTIX Silent", False, Role.IT_SUPPORT),
    ("Cherry Stream Keyboard", "KEYBOARD", "JK-8500", False, Role.IT_SUPPORT),
    ("Verbatim USB-C to HDMI Adapter", "ADAPTER", "USB-C HDMI", False, Role.IT_SUPPORT),
    ("Printer Toner", "PRINTER_TONER", None, False, Role.EMPFANG),
    ("Whiteboard", "WHITEBOARD", None, False, Role.EMPFANG),
    ("Flipchart Paper", "FLIPCHART", None, False, Role.EMPFANG),
    ("Office Chair", "CHAIR", None, True, Role.EMPFANG),
]


@click.group('portal')
def portal_group():
    """System bootstrap and repair commands."""


@portal_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database tables created")


@portal_group.command('reset-db')
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
    db.create_all()
    click.echo("PASS Database reset complete")


@portal_group.command('seed')
@with_appcontext
def seed():
    """Create demo users (one per role) and demo products. Safe to re-run."""
    created_users = 0
    for email, name, role, cost_center, department in DEMO_USERS:
        if db.session.query(User).filter_by(email=email).first():
            continue
        db.session.add(User(
            email=email,
            name=name,
            role=role,
            cost_center=cost_center,
            department=department,
            is_active=True,
        ))
        created_users += 1

    created_products = 0
    for name, category, model, requires_approval, responsible_role in DEMO_PRODUCTS:
        if db.session.query(Product).filter_by(name=name).first():
            continue
        db.session.add(Product(
            name=name,
            category=category,
            model=model,
            requires_approval=requires_approval,
            responsible_role=responsible_role,
            is_active=True,
        ))
        created_products += 1

    db.session.commit()
    click.echo(f"PASS Created {created_users} users, {created_products} products")


@click.group('orders')
def orders_group():
    """Order inspection commands."""


@orders_group.command('show')
@click.argument('order_number')
@with_appcontext
def show_order(order_number):
    """Print an order's status, approvals and status history."""
    order = db.session.query(Order).filter_by(order_number=order_number).first()
    if order is None:
        raise click.ClickException(f"Order {order_number} not found")

    click.echo(f"{order.order_number}  {order.status.value} ({STATUS_LABELS[order.status]})")
    click.echo(f"  requester: {order.requester.email}  cost center: {order.cost_center}")
    click.echo(f"  requires approval: {'yes' if order.requires_approval else 'no'}")

    for approval in order.approvals:
        click.echo(f"  approval #{approval.id}: {approval.approver.email} {approval.status.value}")

    click.echo("  history:")
    for entry in order.status_history:
        from_status = entry.from_status.value if entry.from_status else "-"
        note = f"  ({entry.note})" if entry.note else ""
        click.echo(
            f"    {entry.changed_at:%Y-%m-%d %H:%M:%S}  {from_status} -> {entry.to_status.value}"
            f"  by {entry.changed_by.email}{note}"
        )


@orders_group.command('transitions')
def show_transitions():
    """Print the transition table and which roles may drive each target."""
    for status, targets in ALLOWED_TRANSITIONS.items():
        if not targets:
            click.echo(f"{status.value}: (terminal)")
            continue
        click.echo(f"{status.value}:")
        for target in sorted(targets, key=lambda s: s.value):
            roles = [role.value for role, allowed in ROLE_TARGET_STATUSES.items() if target in allowed]
            click.echo(f"  -> {target.value}  [{', '.join(roles)}]")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(portal_group)
    app.cli.add_command(orders_group)
