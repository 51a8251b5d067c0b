"""
Flask CLI commands:
- flask init-db
- flask sweep-tokens
- flask create-admin EMAIL --name NAME
"""
import click
from flask import current_app
from flask.cli import with_appcontext

from utils.exceptions import DuplicateEmail


def _services():
    return current_app.extensions["auth"]


@click.command("init-db")
@with_appcontext
def init_db():
    """Create database tables."""
    _services().storage.reload()
    click.echo("Database tables created")


@click.command("sweep-tokens")
@with_appcontext
def sweep_tokens():
    """Delete revocation entries and refresh tokens whose tokens have expired."""
    result = _services().sweep()
    click.echo(f"Removed {result.revocations} revocation entries and {result.refresh_tokens} refresh tokens")


@click.command("create-admin")
@click.argument("email")
@click.option("--name", default="Administrator", show_default=True)
@click.password_option()
@with_appcontext
def create_admin(email, name, password):
    """Bootstrap an administrator account."""
    try:
        account = _services().sessions.signup(name, email, password, role="admin")
    except DuplicateEmail:
        raise click.ClickException(f"An account with email {email} already exists")
    click.echo(f"Created admin {account.email} ({account.id})")


def register_commands(app):
    app.cli.add_command(init_db)
    app.cli.add_command(sweep_tokens)
    app.cli.add_command(create_admin)
