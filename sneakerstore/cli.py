# sneakerstore/cli.py
from datetime import timedelta

import click
from flask.cli import with_appcontext
from flask_jwt_extended import create_access_token

from .errors import ApiError
from .extensions import db
from .model import User
from .model.user import ROLES
from .services import catalog_service


@click.command("create-user")
@with_appcontext
@click.option("--email", required=True)
@click.option("--name", required=True)
@click.option("--role", type=click.Choice(ROLES), default="user", show_default=True)
def create_user(email, name, role):
    email = email.strip().lower()
    if User.query.filter_by(email=email).first():
        click.echo("Email already exists"); return
    u = User(email=email, name=name, role=role)
    db.session.add(u); db.session.commit()
    click.echo(f"User created: {u.id} {u.email} ({u.role})")


@click.command("issue-token")
@with_appcontext
@click.option("--email", required=True)
@click.option("--hours", type=int, default=24, show_default=True)
def issue_token(email, hours):
    """Print a bearer token for an existing user."""
    u = User.query.filter_by(email=email.strip().lower()).first()
    if not u:
        raise click.ClickException("User not found")
    click.echo(create_access_token(identity=str(u.id), expires_delta=timedelta(hours=hours)))


@click.command("import-variants")
@with_appcontext
@click.argument("file_path", type=click.Path(exists=True, dir_okay=False))
def import_variants(file_path):
    """Upsert product variants and stock from a .csv or .xlsx sheet."""
    try:
        df = catalog_service.read_sheet(file_path)
        click.echo(f"📄 Loaded {len(df)} rows from {file_path}")
        count = catalog_service.import_variants(df)
    except ApiError as e:
        raise click.ClickException(e.message)
    click.echo(f"✅ Imported {count} rows")


@click.command("export-orders")
@with_appcontext
@click.argument("file_path", type=click.Path(dir_okay=False))
@click.option("--status", default=None, help="Only export orders in this status")
def export_orders(file_path, status):
    count = catalog_service.export_orders(file_path, status=status)
    click.echo(f"✅ Exported {count} orders to {file_path}")


def register_cli(app):
    app.cli.add_command(create_user)
    app.cli.add_command(issue_token)
    app.cli.add_command(import_variants)
    app.cli.add_command(export_orders)
