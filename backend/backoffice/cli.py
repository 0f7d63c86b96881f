# Overview: Flask CLI command groups for bootstrap, users and API keys.

# backend/backoffice/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to backoffice (PowerShell: $env:FLASK_APP="backoffice").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables that do not exist yet (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users:
# - python -m flask users create --username admin --password "Password123"
#   Create a staff user (prompts if options are omitted).
# - python -m flask users list
#
# Mobile assistant keys:
# - python -m flask api-keys create --name "Assistant" --permissions read_stock,create_sale
#   Issue a key; the plaintext is printed once.
# - python -m flask api-keys list

import click
from flask.cli import with_appcontext

from .errors import LedgerError
from .extensions import db
from .models import User
from .services import api_key_service
from .services.auth_service import create_user


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create missing tables. Existing tables and data are left untouched."""
    db.create_all()
    click.echo("PASS Database schema ready.")


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

    click.echo("PASS Database reset complete. Run 'python -m flask users create' to add a user.")


@click.group('users')
def users_group():
    """Staff user commands."""


@users_group.command('create')
@click.option('--username', prompt=True)
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
@click.option('--email', default=None)
@with_appcontext
def create_user_cmd(username, password, email):
    """Create a staff user."""
    try:
        user = create_user(username=username, password=password, email=email)
    except LedgerError as e:
        raise click.ClickException(e.message)
    click.echo(f"PASS Created user {user.username} (ID: {user.id})")


@users_group.command('list')
@with_appcontext
def list_users():
    users = db.session.query(User).order_by(User.id).all()
    if not users:
        click.echo("No users.")
        return
    for user in users:
        status = "active" if user.is_active else "inactive"
        click.echo(f"{user.id:>4}  {user.username:<24} {status}")


@click.group('api-keys')
def api_keys_group():
    """Mobile assistant API key commands."""


@api_keys_group.command('create')
@click.option('--name', 'key_name', required=True, help='Label for the key')
@click.option(
    '--permissions',
    default=",".join(api_key_service.ALL_PERMISSIONS),
    show_default=True,
    help='Comma-separated permission scopes',
)
@with_appcontext
def create_api_key_cmd(key_name, permissions):
    """Issue a key. The plaintext is shown once and never stored."""
    try:
        api_key, plaintext_key = api_key_service.create_api_key(key_name, permissions)
    except LedgerError as e:
        raise click.ClickException(e.message)
    click.echo(f"PASS Created API key {api_key.key_name} (ID: {api_key.id})")
    click.echo(f"KEY  {plaintext_key}")
    click.echo("WARN Store this key now; it cannot be shown again.")


@api_keys_group.command('list')
@click.option('--all', 'include_inactive', is_flag=True, help='Include revoked keys')
@with_appcontext
def list_api_keys_cmd(include_inactive):
    keys = api_key_service.list_api_keys(include_inactive=include_inactive)
    if not keys:
        click.echo("No API keys.")
        return
    for key in keys:
        status = "active" if key.is_active else "revoked"
        click.echo(f"{key.id:>4}  {key.key_name:<24} {status:<8} {key.permissions}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(api_keys_group)
