#!/usr/bin/env python3
"""
CLI for the IT Cost Calculation service.

Usage:
    python cli.py init-db
    python cli.py create-admin --email admin@example.se --superadmin
    python cli.py import-ci data/ci.csv --admin-email admin@example.se
    python cli.py import-budget data/ledger.csv --admin-email admin@example.se --label "Okt 2025"
    python cli.py serve --port 8000

Commands:
    init-db        Create database tables
    create-admin   Create the first admin (or superadmin) account
    import-ci      Import configuration items from CSV
    import-budget  Import budget/outcome ledger rows from CSV
    purge-audit    Remove audit entries past the retention period
    serve          Start the API server
"""
from datetime import datetime
from pathlib import Path
import logging

import click

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@click.group()
@click.version_option(version='1.0.0')
def cli():
    """IT Cost Calculation CLI.

    Database setup, bootstrap accounts and bulk CSV imports.
    """
    pass


def _admin_by_email(db, email: str):
    from itcost.infrastructure.repositories import UserRepository

    user = UserRepository(db).get_by_email(email)
    if user is None or not user.is_admin:
        raise click.ClickException(f"No admin account with email {email}")
    return user


@cli.command('init-db')
def init_db_command():
    """Create all database tables."""
    from itcost.models import init_db

    init_db()
    click.echo(click.style('Database initialized', fg='green'))


@cli.command('create-admin')
@click.option('--email', required=True, help='Admin email address')
@click.option('--full-name', default=None, help='Display name')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--superadmin', is_flag=True, help='Grant the superadmin role')
def create_admin(email: str, full_name: str, password: str, superadmin: bool):
    """Create an admin account without an existing admin.

    Example:
        python cli.py create-admin --email admin@example.se --superadmin
    """
    from itcost.config import get_config
    from itcost.models import SessionLocal, Profile, AppRole, PermissionLevel, init_db
    from itcost.infrastructure.repositories import UserRepository
    from itcost.infrastructure.security import hash_password

    minimum = get_config().min_password_length
    if len(password) < minimum:
        raise click.ClickException(f"Password must be at least {minimum} characters")

    init_db()
    db = SessionLocal()
    try:
        repo = UserRepository(db)
        if repo.get_by_email(email) is not None:
            raise click.ClickException(f"A user with email {email} already exists")

        user = Profile(
            email=email.strip(),
            full_name=full_name,
            password_hash=hash_password(password),
            permission_level=PermissionLevel.READ_WRITE.value,
            can_approve=True,
            approval_organizations=[],
        )
        repo.add(user)
        db.flush()
        role = AppRole.SUPERADMIN.value if superadmin else AppRole.ADMIN.value
        repo.set_role(user, role)
        db.commit()
        click.echo(click.style(f"Created {role} {email} (id {user.id})", fg='green'))
    finally:
        db.close()


@cli.command('import-ci')
@click.argument('csv_path', type=click.Path(exists=True))
@click.option('--admin-email', required=True, help='Admin the import is recorded under')
def import_ci(csv_path: str, admin_email: str):
    """Import configuration items from a CSV file.

    Example:
        python cli.py import-ci data/ci.csv --admin-email admin@example.se
    """
    from itcost.models import SessionLocal
    from itcost.modules.etl import decode_upload, parse_configuration_item_csv
    from itcost.domain.services import ConfigurationItemService
    from itcost.domain.exceptions import DomainError

    db = SessionLocal()
    try:
        admin = _admin_by_email(db, admin_email)
        df = parse_configuration_item_csv(decode_upload(Path(csv_path).read_bytes()))
        result = ConfigurationItemService(db).import_items(df, admin)
    except DomainError as e:
        raise click.ClickException(e.message)
    finally:
        db.close()

    click.echo(click.style(f"Imported {result['success']} configuration items", fg='green'))
    if result['failed']:
        click.echo(click.style(f"{result['failed']} rows failed:", fg='yellow'))
        for error in result['errors']:
            click.echo(f"  {error}")


@cli.command('import-budget')
@click.argument('csv_path', type=click.Path(exists=True))
@click.option('--admin-email', required=True, help='Admin the import is recorded under')
@click.option('--label', default=None, help='Import label (defaults to the file name)')
@click.option('--extraction-date', default=None, help='Ledger extraction date (YYYY-MM-DD)')
@click.option('--replace', is_flag=True, help='Replace existing ledger rows in the same transaction')
def import_budget(csv_path: str, admin_email: str, label: str, extraction_date: str, replace: bool):
    """Import budget/outcome ledger rows from a CSV file.

    Example:
        python cli.py import-budget data/ledger.csv --admin-email admin@example.se --replace
    """
    from itcost.models import SessionLocal
    from itcost.modules.etl import decode_upload, parse_budget_outcome_csv
    from itcost.domain.services import BudgetService
    from itcost.domain.exceptions import DomainError

    extracted = None
    if extraction_date:
        try:
            extracted = datetime.strptime(extraction_date, '%Y-%m-%d').date()
        except ValueError:
            raise click.BadParameter('Use YYYY-MM-DD', param_hint='--extraction-date')

    db = SessionLocal()
    try:
        admin = _admin_by_email(db, admin_email)
        service = BudgetService(db)
        df = parse_budget_outcome_csv(decode_upload(Path(csv_path).read_bytes()))
        imported = service.import_budget_outcomes(
            df, admin, label=label or Path(csv_path).name, extraction_date=extracted, replace=replace
        )
    except DomainError as e:
        raise click.ClickException(e.message)
    finally:
        db.close()

    click.echo(click.style(f"Imported {imported} ledger rows", fg='green'))


@cli.command('purge-audit')
def purge_audit():
    """Remove audit entries older than audit.retention_days."""
    from itcost.models import SessionLocal
    from itcost.domain.services import AuditService

    db = SessionLocal()
    try:
        removed = AuditService(db).purge_expired()
    finally:
        db.close()
    click.echo(f"Removed {removed} audit entries")


@cli.command()
@click.option('--port', type=int, default=8000, help='Server port')
@click.option('--host', default='0.0.0.0', help='Server host')
@click.option('--reload', is_flag=True, help='Enable auto-reload')
def serve(port: int, host: str, reload: bool):
    """Start the API server.

    Runs the FastAPI application with uvicorn.

    Example:
        python cli.py serve --port 8000 --reload
    """
    import uvicorn

    click.echo(click.style('IT Cost Calculation - API Server', fg='cyan', bold=True))
    click.echo(f"Starting server at http://{host}:{port}")
    click.echo("Press CTRL+C to stop\n")

    uvicorn.run(
        "itcost.main:app",
        host=host,
        port=port,
        reload=reload
    )


if __name__ == '__main__':
    cli()
