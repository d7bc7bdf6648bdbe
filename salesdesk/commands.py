# salesdesk/commands.py
import os

import click
from flask import current_app
from flask.cli import with_appcontext

from salesdesk.extensions import db
from salesdesk.models.user import User
from salesdesk.services.reconciliation import expire_overdue


@click.command("create-admin")
@click.option("--username", default=lambda: os.environ.get("ADMIN_USERNAME", "admin"),
              show_default=True, help="Admin username")
@click.option("--email", default=lambda: os.environ.get("ADMIN_EMAIL", "admin@example.com"),
              show_default=True, help="Admin e-mail")
@click.option("--password", default=lambda: os.environ.get("ADMIN_PASSWORD"),
              help="Password (prompted when omitted)")
@click.option("--force", is_flag=True, default=False,
              help="Reset password and role when the user already exists")
@with_appcontext
def create_admin(username: str, email: str, password: str | None, force: bool):
    """Create or reset the admin account."""
    if not password:
        password = click.prompt("Password", hide_input=True, confirmation_prompt=True)

    u = db.session.scalar(db.select(User).where(User.username == username))
    if u and not force:
        click.echo(f"User '{username}' already exists. Use --force to reset the password.")
        return

    if not u:
        u = User(username=username, email=email)
        db.session.add(u)

    u.role = "admin"
    u.is_active_flag = True
    u.set_password(password)
    db.session.commit()
    click.echo(f"Admin ready: {username}")


@click.command("expire-bank-transfers")
@click.option("--dry-run", is_flag=True, default=False, help="Only list overdue orders")
@click.option("--hours", type=int, default=None, help="Override BANK_TRANSFER_EXPIRY_HOURS")
@with_appcontext
def expire_bank_transfers(dry_run: bool, hours: int | None):
    """Cancel pending bank-transfer orders older than the expiry window."""
    hours = hours or int(current_app.config.get("BANK_TRANSFER_EXPIRY_HOURS", 24))
    ids = expire_overdue(expiry_hours=hours, dry_run=dry_run)
    verb = "Would cancel" if dry_run else "Cancelled"
    click.echo(f"{verb} {len(ids)} order(s){': ' + ', '.join(map(str, ids)) if ids else ''}")


def register_commands(app) -> None:
    app.cli.add_command(create_admin)
    app.cli.add_command(expire_bank_transfers)
