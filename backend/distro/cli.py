# Overview: Flask CLI command groups for bootstrap, catalog setup, and inspection.

# backend/distro/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Create all tables (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users:
# - python -m flask users create --name "Asha" --email asha@example.com --role officer
#   Create a user (password is prompted, never echoed).
# - python -m flask users list
#
# Catalog:
# - python -m flask stores create --code ST-001 --name "Corner Mart" --officer-id 2
# - python -m flask products create --code P-001 --name "Rice 5kg" --price-cents 45000 --stock 100
#
# Inventory:
# - python -m flask stock adjust --product-id 1 --delta -3 --by admin@example.com --note "damaged"
#   Guarded correction; refuses to drive stock below zero.
#
# Balances:
# - python -m flask balances show --store-id 1
# - python -m flask balances show --officer-id 2

import click
from flask.cli import with_appcontext

from .extensions import db
from .errors import DomainError
from .models import User
from .permissions import ROLE_ADMIN, VALID_ROLES, Actor
from .services import auth_service, balance_service, inventory_service, store_service


# Read-only actor for inspection commands; never recorded on any row.
CLI_READER = Actor(id=0, role=ROLE_ADMIN)


def _money(cents: int) -> str:
    sign = "-" if cents < 0 else ""
    cents = abs(cents)
    return f"{sign}{cents // 100}.{cents % 100:02d}"


def _actor_for_email(email: str) -> Actor:
    user = db.session.query(User).filter_by(email=email.strip().lower()).first()
    if user is None or not user.is_active:
        raise click.ClickException(f"No active user with email '{email}'")
    return Actor.from_user(user)


# =============================================================================
# SYSTEM
# =============================================================================

@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database schema ready.")
    click.echo("Next: python -m flask users create --role admin ...")


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


# =============================================================================
# USERS
# =============================================================================

@click.group('users')
def users_group():
    """User inspection and bootstrap."""


@users_group.command('create')
@click.option('--name', prompt=True)
@click.option('--email', prompt=True)
@click.option('--role', type=click.Choice(VALID_ROLES), prompt=True)
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
@click.option('--phone', default=None)
@click.option('--area', default=None)
@with_appcontext
def create_user_cmd(name, email, role, password, phone, area):
    """Create an active user."""
    try:
        user = auth_service.create_user(
            name=name,
            email=email,
            password=password,
            role=role,
            phone=phone,
            area=area,
        )
    except DomainError as e:
        raise click.ClickException(e.message)
    click.echo(f"PASS Created user {user.id}: {user.email} ({user.role})")


@users_group.command('list')
@with_appcontext
def list_users():
    users = db.session.query(User).order_by(User.id).all()
    if not users:
        click.echo("No users.")
        return
    for user in users:
        click.echo(f"{user.id:>5}  {user.email:<32} {user.role:<14} {user.status}")


# =============================================================================
# STORES / PRODUCTS
# =============================================================================

@click.group('stores')
def stores_group():
    """Store bootstrap."""


@stores_group.command('create')
@click.option('--code', 'store_code', required=True)
@click.option('--name', required=True)
@click.option('--officer-id', type=int, required=True)
@click.option('--proprietor', 'proprietor_name', default=None)
@click.option('--address', default=None)
@click.option('--contact', 'contact_number', default=None)
@click.option('--area', default=None)
@with_appcontext
def create_store_cmd(store_code, name, officer_id, proprietor_name, address, contact_number, area):
    try:
        store = store_service.create_store(
            store_code=store_code,
            name=name,
            officer_id=officer_id,
            proprietor_name=proprietor_name,
            address=address,
            contact_number=contact_number,
            area=area,
        )
    except DomainError as e:
        raise click.ClickException(e.message)
    click.echo(f"PASS Created store {store.id}: {store.store_code} {store.name} (officer {officer_id})")


@click.group('products')
def products_group():
    """Product catalog bootstrap."""


@products_group.command('create')
@click.option('--code', 'product_code', required=True)
@click.option('--name', required=True)
@click.option('--price-cents', type=int, required=True)
@click.option('--stock', type=int, default=0, show_default=True)
@click.option('--category', default='general', show_default=True)
@click.option('--unit', type=click.Choice(inventory_service.PRODUCT_UNITS), default='piece', show_default=True)
@click.option('--pack-size', type=int, default=None)
@with_appcontext
def create_product_cmd(product_code, name, price_cents, stock, category, unit, pack_size):
    try:
        product = inventory_service.create_product(
            product_code=product_code,
            name=name,
            price_cents=price_cents,
            stock=stock,
            category=category,
            unit=unit,
            pack_size=pack_size,
        )
    except DomainError as e:
        raise click.ClickException(e.message)
    click.echo(f"PASS Created product {product.id}: {product.product_code} {product.name} stock={product.stock}")


# =============================================================================
# STOCK
# =============================================================================

@click.group('stock')
def stock_group():
    """Inventory corrections."""


@stock_group.command('adjust')
@click.option('--product-id', type=int, required=True)
@click.option('--delta', type=int, required=True, help='Signed quantity change')
@click.option('--by', 'actor_email', required=True, help='Email of the admin or stock manager')
@click.option('--note', default=None)
@with_appcontext
def adjust_stock_cmd(product_id, delta, actor_email, note):
    actor = _actor_for_email(actor_email)
    try:
        product = inventory_service.adjust_stock(product_id, delta, actor=actor, note=note)
    except DomainError as e:
        raise click.ClickException(e.message)
    click.echo(f"PASS Product {product.id} stock is now {product.stock}")


# =============================================================================
# BALANCES
# =============================================================================

@click.group('balances')
def balances_group():
    """Derived balance inspection."""


@balances_group.command('show')
@click.option('--store-id', type=int, default=None)
@click.option('--officer-id', type=int, default=None)
@click.option('--history', is_flag=True, help='Print due and payment history')
@with_appcontext
def show_balance(store_id, officer_id, history):
    """Show a store balance or an officer rollup (exactly one of the options)."""
    if (store_id is None) == (officer_id is None):
        raise click.UsageError("Pass exactly one of --store-id or --officer-id")

    try:
        if store_id is not None:
            data = balance_service.get_store_balance(store_id, CLI_READER).to_dict()
            click.echo(f"Store {store_id}")
        else:
            rollup = balance_service.get_officer_balance(officer_id, CLI_READER)
            data = rollup["balance"]
            click.echo(f"Officer {officer_id} ({rollup['officer']['name']}), stores {data['store_ids']}")
    except DomainError as e:
        raise click.ClickException(e.message)

    click.echo(f"  owed (orders): {_money(data['orders_owed_cents'])}")
    click.echo(f"  owed (manual): {_money(data['manual_owed_cents'])}")
    click.echo(f"  paid:          {_money(data['paid_cents'])}")
    click.echo(f"  net:           {_money(data['net_cents'])}")

    if history:
        click.echo("\nDues:")
        for entry in data["due_history"]:
            ref = f"order {entry['order_id']}" if entry["type"] == "by_order" else f"due {entry['due_id']}"
            click.echo(f"  {entry['date'] or '-':<22} {entry['type']:<9} {ref:<12} {_money(entry['amount_cents'])}")
        click.echo("\nPayments:")
        for payment in data["payment_history"]:
            click.echo(f"  {payment['date'] or '-':<22} {payment['method'] or '-':<9} {_money(payment['amount_cents'])}")


def register_commands(app):
    """Register CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(stores_group)
    app.cli.add_command(products_group)
    app.cli.add_command(stock_group)
    app.cli.add_command(balances_group)
