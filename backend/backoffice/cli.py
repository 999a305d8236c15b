# Overview: Flask CLI command groups for bootstrap, inspection, and the web order poller.

# backend/backoffice/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to backoffice (PowerShell: $env:FLASK_APP="backoffice").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--threshold 3000]
#   Idempotent bootstrap: creates tables, the wholesale threshold rule and one terminal per location.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Terminals:
# - python -m flask terminals list [--all]
# - python -m flask terminals create --number "T-02" --name "Back counter" [--location "Store"]
#
# Till sessions:
# - python -m flask sessions list [--status open|closed] [--limit 20]
#   List recent till sessions with totals and cash difference.
#
# Web orders:
# - python -m flask web-orders poll [--interval 30] [--once]
#   Print online orders waiting for a till as they arrive.

import time

import click
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .services import order_service, register_service, settings_service
from .services.errors import PosError
from .time_utils import to_utc_z


# One till per stock location
DEFAULT_TERMINALS = [
    ("T-01", "Warehouse"),
    ("T-02", "Store 1"),
    ("T-03", "Store 2"),
]


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--threshold', type=float, default=None, help='Wholesale threshold in MXN')
@with_appcontext
def init_system(threshold):
    """
    Initialize the back office: schema, wholesale threshold rule, default terminals.

    Safe to re-run; existing rows are left as they are unless --threshold is given.
    """
    click.echo("START Initializing back office...")

    db.create_all()
    click.echo("PASS Schema ready")

    rule = settings_service.get_rule(settings_service.WHOLESALE_THRESHOLD_KEY)
    if rule is None or threshold is not None:
        amount = threshold if threshold is not None else current_app.config["WHOLESALE_THRESHOLD_DEFAULT"]
        settings_service.set_wholesale_threshold(amount, actor="cli")
        click.echo(f"PASS Wholesale threshold set to {amount} MXN")
    else:
        click.echo(f"PASS Using existing wholesale threshold: {rule.rule_value}")

    if not register_service.list_terminals(include_inactive=True):
        for number, name in DEFAULT_TERMINALS:
            terminal = register_service.create_terminal(number, name, name)
            click.echo(f"PASS Created terminal: {terminal.terminal_number} {terminal.name} (ID: {terminal.id})")
    else:
        click.echo("PASS Terminals already configured")

    click.echo("DONE Back office initialized")


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
    click.echo("BUILD Recreating schema...")
    db.create_all()
    click.echo("PASS Database reset. Run 'flask system init' to bootstrap.")


@click.group('terminals')
def terminals_group():
    """Terminal inspection and bootstrap commands."""


@terminals_group.command('list')
@click.option('--all', 'include_inactive', is_flag=True, help='Include inactive terminals')
@with_appcontext
def list_terminals_cli(include_inactive):
    terminals = register_service.list_terminals(include_inactive=include_inactive)
    if not terminals:
        click.echo("No terminals found.")
        return

    click.echo(f"{'ID':<5} {'Number':<10} {'Name':<25} {'Active':<7} {'Open session'}")
    for terminal in terminals:
        session = register_service.get_open_session(terminal.id)
        click.echo(
            f"{terminal.id:<5} {terminal.terminal_number:<10} {terminal.name:<25} "
            f"{'yes' if terminal.is_active else 'no':<7} {session.session_number if session else '-'}"
        )


@terminals_group.command('create')
@click.option('--number', required=True, help='Terminal number, e.g. T-02')
@click.option('--name', required=True, help='Terminal name')
@click.option('--location', default=None, help='Where the terminal sits')
@with_appcontext
def create_terminal_cli(number, name, location):
    try:
        terminal = register_service.create_terminal(number, name, location)
    except PosError as e:
        db.session.rollback()
        raise click.ClickException(e.message)
    click.echo(f"PASS Created terminal {terminal.terminal_number} (ID: {terminal.id})")


@click.group('sessions')
def sessions_group():
    """Till session inspection commands."""


@sessions_group.command('list')
@click.option('--status', type=click.Choice(['open', 'closed']), help='Filter by status')
@click.option('--terminal-id', type=int, help='Filter by terminal ID')
@click.option('--limit', type=int, default=20, help='Max sessions to show')
@with_appcontext
def list_sessions_cli(status, terminal_id, limit):
    """
    List till sessions.

    Example:
        flask sessions list
        flask sessions list --status open
    """
    sessions = register_service.list_sessions(status=status, terminal_id=terminal_id, limit=limit)
    if not sessions:
        click.echo("No sessions found.")
        return

    click.echo("\n" + "=" * 100)
    click.echo(f"{'Number':<12} {'Terminal':<9} {'Status':<8} {'Opened':<22} {'Sales':>12} {'Txns':>6} {'Difference':>12}")
    click.echo("=" * 100)
    for session in sessions:
        difference = session.cash_difference_cents
        click.echo(
            f"{session.session_number:<12} {session.terminal_id:<9} {session.status:<8} "
            f"{to_utc_z(session.opened_at):<22} {session.total_sales_cents / 100:>12.2f} "
            f"{session.total_transactions:>6} "
            f"{(f'{difference / 100:.2f}' if difference is not None else '-'):>12}"
        )


@click.group('web-orders')
def web_orders_group():
    """Online order intake commands."""


@web_orders_group.command('poll')
@click.option('--interval', type=int, default=None, help='Seconds between polls (default WEB_ORDER_POLL_SECONDS)')
@click.option('--once', is_flag=True, help='Poll a single time and exit')
@with_appcontext
def poll_web_orders(interval, once):
    """
    Print online orders waiting to be completed at a till.

    The first poll lists every pending order; later polls list only orders
    that were not pending at the previous poll.
    """
    interval = interval or current_app.config["WEB_ORDER_POLL_SECONDS"]
    seen: set[int] = set()
    first = True

    while True:
        orders = [o for o in order_service.pending_web_orders() if o.id not in seen]
        for order in orders:
            seen.add(order.id)
            click.echo(
                f"NEW  Order #{order.order_number} {order.status:<16} "
                f"{order.total_cents / 100:>10.2f} {order.delivery_method or '-'}"
            )
        if first and not orders:
            click.echo("No pending web orders.")
        first = False

        if once:
            return
        db.session.remove()
        time.sleep(interval)


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(terminals_group)
    app.cli.add_command(sessions_group)
    app.cli.add_command(web_orders_group)
