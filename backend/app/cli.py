# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/app/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Create missing tables (with the paid-amount trigger) and a default admin.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# User inspection/bootstrap:
# - python -m flask users list
#   List all users with role and active status.
# - python -m flask users create --username admin2 --email admin2@example.com --full-name "Second Admin" --role admin
#   Create a user (prompts if options are omitted).
#
# Invoices:
# - python -m flask invoices mark-overdue
#   Flip sent/partial_paid invoices past their due date to overdue.

import click
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .models import User
from .services import user_service
from .services.invoice_service import mark_overdue_invoices
from .validation import USER_ROLES, ValidationError, ConflictError

DEFAULT_ADMIN = {
    "username": "admin",
    "email": "admin@company.com",
    "full_name": "System Administrator",
    "role": "admin",
}
DEFAULT_ADMIN_PASSWORD = "admin123"


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--admin-email', default=DEFAULT_ADMIN["email"], show_default=True)
@click.option('--admin-password', default=DEFAULT_ADMIN_PASSWORD, show_default=True)
@with_appcontext
def init_system(admin_email, admin_password):
    """
    Initialize the system: create missing tables and a default admin.

    Idempotent; an existing admin account is left untouched.

    SECURITY: Change the admin password immediately in production!
    """
    click.echo("START Initializing sales management system...")

    db.create_all()
    click.echo("PASS Tables ready")

    existing = db.session.query(User).filter(User.role == "admin").first()
    if existing:
        click.echo(f"WARN  Admin '{existing.username}' already exists, skipping...")
        return

    try:
        user = user_service.create_user({**DEFAULT_ADMIN, "email": admin_email, "password": admin_password})
    except (ValidationError, ConflictError) as e:
        click.echo(f"FAIL Failed to create admin: {str(e)}")
        return

    click.echo(f"PASS Created admin: {user.username} ({user.email})")
    click.echo("\nSECURITY WARNING: change the default password immediately in production!")


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
@click.option('--email', prompt=True, help='Email address')
@click.option('--full-name', prompt=True, help='Full name')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(list(USER_ROLES)), prompt=True, help='Role')
@with_appcontext
def create_user_cli(username, email, full_name, password, role):
    """Create a new user interactively. Password must be at least 6 characters."""
    try:
        user = user_service.create_user({
            "username": username,
            "email": email,
            "full_name": full_name,
            "password": password,
            "role": role,
        })
    except (ValidationError, ConflictError) as e:
        click.echo(f"FAIL Failed to create user: {str(e)}")
        return

    click.echo(f"PASS Created user: {user.username} ({user.email}) with role '{user.role}'")
    click.echo("SECURITY Password securely hashed with bcrypt")


@users_group.command('list')
@click.option('--role', type=click.Choice(list(USER_ROLES)), help='Filter by role')
@with_appcontext
def list_users(role):
    """List all users with their role."""
    query = db.session.query(User)
    if role:
        query = query.filter_by(role=role)
    users = query.order_by(User.user_id).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<5} {'Username':<20} {'Email':<30} {'Role':<12} {'Active'}")
    click.echo("="*90)
    for user in users:
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.user_id:<5} {user.username:<20} {user.email:<30} {user.role:<12} {active_str}")
    click.echo("="*90 + "\n")


@click.group('invoices')
def invoices_group():
    """Invoice maintenance commands."""


@invoices_group.command('mark-overdue')
@with_appcontext
def mark_overdue_cli():
    """Mark sent/partial_paid invoices past their due date as overdue."""
    count = mark_overdue_invoices()
    current_app.logger.info("Marked %d invoice(s) overdue", count)
    click.echo(f"Marked {count} invoice(s) as overdue.")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(invoices_group)
