# Overview: Flask CLI command groups for bootstrap, counter repair, ledger and cache maintenance.

# backend/laundrypos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init-db
#   Create all tables (use "flask db upgrade" for migrated deployments).
# - python -m flask system create-store --name "Main Laundry" --timezone "Asia/Dhaka"
#   Create a store (tenant).
#
# Invoice counters:
# - python -m flask counters show --store-id 1 [--date 2025-12-25]
#   Show the last issued invoice sequence for a business date (default: today).
# - python -m flask counters list --store-id 1
#   List every daily counter of a store, newest date first.
# - python -m flask counters fix --store-id 1
#   Set today's counter to the highest sequence actually used by today's invoices.
# - python -m flask counters reset --store-id 1 --date 2025-12-25 --start 0 --by "owner"
#   Administratively set a date's counter.
#
# Ledger outbox:
# - python -m flask ledger pending --store-id 1
#   List ledger entries committed with a stock change but not yet delivered.
# - python -m flask ledger drain [--store-id 1]
#   Deliver queued ledger entries.
#
# Cache:
# - python -m flask cache clear --store-id 1 [--all]
#   Drop cached collections for a store.
#
# Store users:
# - python -m flask users add --store-id 1 --id u1 --name "Owner" --email owner@example.com --role admin
#   Add a staff member to the roster. Once a roster exists, roles come from it.
# - python -m flask users list --store-id 1

import click
from flask.cli import with_appcontext

from .extensions import db
from .services import invoice_number_service, stock_ledger_service, store_service, store_user_service
from .validation import ConflictError, NotFoundError, ValidationError


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables for a fresh development database."""
    db.create_all()
    click.echo("PASS Database tables created")


@system_group.command('create-store')
@click.option('--name', required=True, help='Store name')
@click.option('--timezone', default='UTC', show_default=True, help='IANA timezone of the business date')
@with_appcontext
def create_store(name, timezone):
    try:
        store = store_service.create_store(name, timezone)
    except ValidationError as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Created store: {store.name} (ID: {store.id}, timezone: {store.timezone})")


@click.group('counters')
def counters_group():
    """Daily invoice counter inspection and repair."""


@counters_group.command('show')
@click.option('--store-id', type=int, required=True)
@click.option('--date', 'day', default=None, help='YYYY-MM-DD (default: store business date today)')
@with_appcontext
def show_counter(store_id, day):
    try:
        if day:
            value = invoice_number_service.get_date_invoice_counter(store_id, day)
        else:
            value = invoice_number_service.get_today_invoice_counter(store_id)
    except (NotFoundError, ValidationError) as e:
        raise click.ClickException(str(e))
    click.echo(f"Store {store_id} {day or 'today'}: last_number={value}")


@counters_group.command('list')
@click.option('--store-id', type=int, required=True)
@with_appcontext
def list_counters(store_id):
    counters = invoice_number_service.get_all_daily_counters(store_id)
    if not counters:
        click.echo("No counters found.")
        return
    click.echo(f"{'Date':<12} {'Key':<10} {'Last':>6}  Reset by")
    click.echo("-" * 44)
    for c in counters:
        click.echo(f"{c['date']:<12} {c['date_key']:<10} {c['last_number']:>6}  {c['reset_by'] or ''}")


@counters_group.command('fix')
@click.option('--store-id', type=int, required=True)
@with_appcontext
def fix_counter(store_id):
    """Repair today's counter from the invoices actually stored."""
    try:
        value = invoice_number_service.fix_today_invoice_counter(store_id)
    except NotFoundError as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Today's counter for store {store_id} set to {value}")


@counters_group.command('reset')
@click.option('--store-id', type=int, required=True)
@click.option('--date', 'day', required=True, help='YYYY-MM-DD')
@click.option('--start', 'start_number', type=int, default=0, show_default=True)
@click.option('--by', 'reset_by', default='system', show_default=True)
@with_appcontext
def reset_counter(store_id, day, start_number, reset_by):
    try:
        counter = invoice_number_service.reset_date_counter(
            store_id, day, start_number=start_number, reset_by=reset_by
        )
    except (NotFoundError, ValidationError) as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Counter for {counter['date']} reset to {counter['last_number']} by {counter['reset_by']}")


@click.group('ledger')
def ledger_group():
    """Stock ledger outbox maintenance."""


@ledger_group.command('pending')
@click.option('--store-id', type=int, required=True)
@with_appcontext
def list_pending(store_id):
    rows = stock_ledger_service.list_pending(store_id)
    if not rows:
        click.echo("No pending ledger entries.")
        return
    for row in rows:
        payload = row["payload"]
        click.echo(
            f"{row['id']:>6}  {payload.get('product_id')}  {payload.get('change_type')}  "
            f"{payload.get('previous_stock')}->{payload.get('new_stock')}  "
            f"attempts={row['attempts']}  {row['last_error'] or ''}"
        )


@ledger_group.command('drain')
@click.option('--store-id', type=int, default=None, help='Only this store (default: all stores)')
@with_appcontext
def drain(store_id):
    result = stock_ledger_service.drain_pending(store_id)
    click.echo(f"PASS Delivered {result.delivered} entries")
    if result.failed:
        click.echo(f"WARN  {result.failed} entries still pending: {result.failed_ids}")


@click.group('cache')
def cache_group():
    """Read cache maintenance."""


@cache_group.command('clear')
@click.option('--store-id', type=int, required=True)
@click.option('--all', 'clear_all', is_flag=True, help='Also clear collections outside the routine set')
@with_appcontext
def clear_cache(store_id, clear_all):
    if clear_all:
        cleared = store_service.clear_all_cache(store_id)
    else:
        cleared = store_service.clear_cache(store_id)
    click.echo(f"PASS Cleared: {', '.join(cleared)}")


@click.group('users')
def users_group():
    """Store user roster."""


@users_group.command('add')
@click.option('--store-id', type=int, required=True)
@click.option('--id', 'user_id', required=True, help='Staff member id')
@click.option('--name', required=True)
@click.option('--email', default=None)
@click.option('--role', required=True, type=click.Choice(['admin', 'manager', 'cashier', 'salesman']))
@with_appcontext
def add_user(store_id, user_id, name, email, role):
    """Add a staff member to a store's roster (the first one must be an admin)."""
    try:
        user = store_user_service.add_store_user(store_id, user_id, name, email, role, added_by="cli")
    except (NotFoundError, ValidationError, ConflictError) as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Added {user.name} ({user.id}) to store {store_id} as {user.role}")


@users_group.command('list')
@click.option('--store-id', type=int, required=True)
@with_appcontext
def list_users(store_id):
    try:
        users = store_user_service.get_store_users(store_id)
    except NotFoundError as e:
        raise click.ClickException(str(e))
    if not users:
        click.echo("No store users (declared staff roles are trusted).")
        return
    for u in users:
        click.echo(f"{u.id:<20} {u.role:<9} {u.name}  {u.email or ''}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(counters_group)
    app.cli.add_command(ledger_group)
    app.cli.add_command(cache_group)
    app.cli.add_command(users_group)
