# Overview: Flask CLI command groups for bootstrap, rule management and maintenance.

# backend/gemledger/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Create all tables and the default admin user (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users:
# - python -m flask users create --username admin --password "Password123"
#
# Approval rules:
# - python -m flask rules list [--all]
# - python -m flask rules add --type MARGIN --threshold 10 [--position 0]
#   MARGIN thresholds are percentages; AMOUNT thresholds are cents.
# - python -m flask rules deactivate 3
#
# Quotations:
# - python -m flask quotes expire [--today 2026-02-01]
#   Expire SENT/APPROVED quotations whose expiry date has passed.
#
# Invoices:
# - python -m flask invoices show 12
#   Print the payment summary of an invoice.
# - python -m flask invoices reset 12 --yes
#   DESTRUCTIVE: delete all payments and mark the invoice UNPAID.

import click
from flask.cli import with_appcontext

from .errors import LedgerError
from .extensions import db
from .models import User
from .services import activity_service, approval_service, auth_service, payment_service, quotation_service
from .services.payment_service import format_amount
from .time_utils import parse_iso_date


DEFAULT_ADMIN_PASSWORD = "Password123"


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """
    Create tables and the default admin user.

    SECURITY: Change the default password immediately in production!
    """
    click.echo("START Initializing Gem Ledger...")
    db.create_all()

    existing = db.session.query(User).filter_by(username="admin").first()
    if existing:
        click.echo("WARN  User 'admin' already exists, skipping...")
    else:
        auth_service.create_user(db.session, "admin", DEFAULT_ADMIN_PASSWORD, display_name="Administrator")
        click.echo("PASS Created user: admin")
        click.echo(f"\nDefault Credentials (CHANGE IN PRODUCTION!):\n   admin -> {DEFAULT_ADMIN_PASSWORD}")

    click.echo("DONE Gem Ledger initialized.")


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
    """User management commands."""


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--email', default=None, help='Email address')
@click.option('--display-name', default=None, help='Name shown in the activity log')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@with_appcontext
def create_user_cli(username, email, display_name, password):
    try:
        user = auth_service.create_user(
            db.session, username, password, email=email, display_name=display_name
        )
    except LedgerError as e:
        raise click.ClickException(e.message)
    click.echo(f"PASS Created user: {user.username} (ID: {user.id})")


@click.group('rules')
def rules_group():
    """Quotation approval rules."""


@rules_group.command('list')
@click.option('--all', 'include_inactive', is_flag=True, help='Include inactive rules')
@with_appcontext
def list_rules_cli(include_inactive):
    rules = approval_service.list_rules(db.session, include_inactive=include_inactive)
    if not rules:
        click.echo("No approval rules configured.")
        return

    click.echo(f"{'ID':<5} {'POS':<5} {'TYPE':<8} {'THRESHOLD':>12} {'ACTIVE':<7} DESCRIPTION")
    for rule in rules:
        threshold = (
            f"{rule.threshold_value:g}%" if rule.rule_type == "MARGIN"
            else format_amount(int(rule.threshold_value))
        )
        click.echo(
            f"{rule.id:<5} {rule.position:<5} {rule.rule_type:<8} {threshold:>12} "
            f"{'yes' if rule.is_active else 'no':<7} {rule.description or ''}"
        )


@rules_group.command('add')
@click.option('--type', 'rule_type', type=click.Choice(['MARGIN', 'AMOUNT'], case_sensitive=False), required=True)
@click.option('--threshold', type=float, required=True, help='Percent for MARGIN, cents for AMOUNT')
@click.option('--position', type=int, default=None, help='Evaluation order (default: last)')
@click.option('--description', default=None)
@with_appcontext
def add_rule_cli(rule_type, threshold, position, description):
    try:
        rule = approval_service.add_rule(
            db.session,
            rule_type=rule_type,
            threshold_value=threshold,
            position=position,
            description=description,
        )
    except LedgerError as e:
        raise click.ClickException(e.message)
    click.echo(f"PASS Added {rule.rule_type} rule {rule.id} at position {rule.position}")


@rules_group.command('deactivate')
@click.argument('rule_id', type=int)
@with_appcontext
def deactivate_rule_cli(rule_id):
    try:
        approval_service.deactivate_rule(db.session, rule_id)
    except LedgerError as e:
        raise click.ClickException(e.message)
    click.echo(f"PASS Deactivated rule {rule_id}")


@click.group('quotes')
def quotes_group():
    """Quotation maintenance."""


@quotes_group.command('expire')
@click.option('--today', default=None, help='Override the current date (YYYY-MM-DD)')
@with_appcontext
def expire_quotes_cli(today):
    try:
        as_of = parse_iso_date(today) if today else None
    except ValueError:
        raise click.BadParameter("must be YYYY-MM-DD", param_hint="--today")
    expired = quotation_service.expire_quotations(db.session, today=as_of)
    click.echo(f"PASS Expired {len(expired)} quotation(s)")
    for number in expired:
        click.echo(f"   {number}")


@click.group('invoices')
def invoices_group():
    """Invoice inspection and repair."""


@invoices_group.command('show')
@click.argument('invoice_id', type=int)
@with_appcontext
def show_invoice_cli(invoice_id):
    try:
        summary = payment_service.get_payment_summary(db.session, invoice_id)
    except LedgerError as e:
        raise click.ClickException(e.message)

    click.echo(f"{summary['invoice_number']}  {summary['payment_status']} ({summary['status']})")
    click.echo(f"   Total:     {format_amount(summary['total_cents'])}")
    click.echo(f"   Paid:      {format_amount(summary['paid_cents'])}")
    click.echo(f"   Remaining: {format_amount(summary['remaining_cents'])}")
    for p in summary["payments"]:
        click.echo(
            f"   - {p['payment_date']} {p['method']:<14} {format_amount(p['amount_cents']):>12} "
            f"{p['reference'] or ''}"
        )
    for s in summary["sales"]:
        click.echo(f"   sale {s['id']}: {s['payment_status']}")

    history = activity_service.get_entity_activity(db.session, "Invoice", invoice_id)
    if history:
        click.echo("   Activity:")
    for entry in history:
        click.echo(f"   {entry.created_at:%Y-%m-%d %H:%M} {entry.action_type:<14} {entry.user_name or entry.user_id}")


@invoices_group.command('reset')
@click.argument('invoice_id', type=int)
@click.option('--yes', is_flag=True, help='Confirm deleting every payment on the invoice')
@with_appcontext
def reset_invoice_cli(invoice_id, yes):
    """DESTRUCTIVE: delete all payments and mark the invoice UNPAID."""
    if not yes:
        raise click.UsageError("Refusing to reset without --yes (all payments will be deleted)")
    try:
        invoice = payment_service.reset_to_unpaid(db.session, invoice_id)
    except LedgerError as e:
        raise click.ClickException(e.message)
    click.echo(f"PASS {invoice.invoice_number} reset to UNPAID")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(rules_group)
    app.cli.add_command(quotes_group)
    app.cli.add_command(invoices_group)
