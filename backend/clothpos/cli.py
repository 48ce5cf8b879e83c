# Overview: Flask CLI command groups for schema bootstrap and user inspection.

# backend/clothpos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# Schema:
# - python -m flask system migrate
#   Create missing tables, apply pending migrations, seed the default admin.
# - python -m flask system status
#   Show the current and latest schema versions.
#   Flask-Migrate's own group works too: python -m flask db current / db upgrade
#
# Users:
# - python -m flask users list
# - python -m flask users create --username sam --password "secret1" --role cashier

import click
from flask.cli import with_appcontext

from .services import schema_service
from .services import auth_service
from .services.auth_service import PasswordValidationError, UsernameTakenError
from .validation import ValidationError


@click.group('system')
def system_group():
    """Schema bootstrap and inspection commands."""


@system_group.command('migrate')
@with_appcontext
def migrate_cli():
    """Bring the store up to the current schema (idempotent)."""
    try:
        applied = schema_service.run_migrations()
    except schema_service.SchemaError as e:
        click.echo(f"FAIL {e}")
        raise SystemExit(1)

    if applied:
        click.echo(f"OK Applied migrations: {', '.join(applied)}")
    else:
        click.echo("OK Schema already up to date")


@system_group.command('status')
@with_appcontext
def status_cli():
    status = schema_service.schema_status()
    click.echo(f"Schema version: {status['version']} (latest {status['latest']})")
    if status["pending"]:
        click.echo(f"Pending: {', '.join(status['pending'])}")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('list')
@with_appcontext
def list_users_cli():
    """List all users with their roles."""
    users = auth_service.list_users()
    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "=" * 60)
    click.echo(f"{'ID':<5} {'Username':<25} {'Role':<10} {'Created'}")
    click.echo("=" * 60)
    for user in users:
        click.echo(f"{user['id']:<5} {user['username']:<25} {user['role']:<10} {user['created_at'] or ''}")
    click.echo("=" * 60 + "\n")


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(['admin', 'cashier']), prompt=True, help='Role')
@with_appcontext
def create_user_cli(username, password, role):
    """
    Create a new user interactively.

    Password must be at least 6 characters.
    """
    try:
        user_id = auth_service.create_user(username, password, role)
    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {e}")
        return
    except UsernameTakenError:
        click.echo(f"FAIL User '{username}' already exists")
        return
    except ValidationError as e:
        click.echo(f"FAIL {e}")
        return

    click.echo(f"OK Created {role} user '{username}' (id={user_id})")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
