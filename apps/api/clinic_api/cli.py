"""CLI tools for clinic administration."""

import click
from sqlalchemy.exc import SQLAlchemyError

from clinic_api.core.security import hash_password
from clinic_api.db.enums import Role
from clinic_api.db.models import Clinic, User
from clinic_api.db.session import SessionLocal
from clinic_api.services.auth_service import normalize_email


@click.group()
def cli():
    """Clinic CLI tools."""
    pass


@cli.command()
@click.option("--name", required=True, help="Clinic name")
@click.option("--slug", required=True, help="URL-friendly slug (lowercase, no spaces)")
@click.option("--timezone", "tz", default="America/Sao_Paulo", show_default=True)
def create_clinic(name: str, slug: str, tz: str):
    """
    Create a clinic (tenant).

    Example:
        python -m clinic_api.cli create-clinic --name "Sorriso" --slug "sorriso"
    """
    slug = slug.lower().strip()
    if not slug.replace("-", "").replace("_", "").isalnum():
        raise click.BadParameter("Slug must be alphanumeric (with optional hyphens/underscores)")

    with SessionLocal() as db:
        if db.query(Clinic).filter(Clinic.slug == slug).first():
            raise click.ClickException(f"Clinic with slug '{slug}' already exists")
        try:
            clinic = Clinic(name=name, slug=slug, timezone=tz)
            db.add(clinic)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise click.ClickException(f"Error: {e}")

        click.echo(f"✓ Created clinic: {name}")
        click.echo(f"  ID: {clinic.id}")
        click.echo(f"  Slug: {slug}")


@cli.command()
@click.option("--clinic-slug", required=True, help="Slug of the clinic the user belongs to")
@click.option("--email", required=True)
@click.option("--name", "display_name", required=True)
@click.option(
    "--role",
    type=click.Choice([r.value for r in Role]),
    default=Role.ADMIN.value,
    show_default=True,
)
@click.password_option()
def create_user(clinic_slug: str, email: str, display_name: str, role: str, password: str):
    """Create a staff account with a password."""
    with SessionLocal() as db:
        clinic = db.query(Clinic).filter(Clinic.slug == clinic_slug.lower()).first()
        if not clinic:
            raise click.ClickException(f"Clinic '{clinic_slug}' not found")

        email = normalize_email(email)
        if db.query(User).filter(User.email == email).first():
            raise click.ClickException(f"User {email} already exists")

        user = User(
            clinic_id=clinic.id,
            email=email,
            display_name=display_name,
            role=role,
            password_hash=hash_password(password),
        )
        db.add(user)
        db.commit()
        click.echo(f"✓ Created {role} {email} in {clinic.name}")


@cli.command()
def process_follow_ups():
    """Send every due follow-up once (same as POST /follow-ups/process)."""
    from clinic_api.worker import run_once

    result = run_once()
    click.echo(
        f"processed={result.processed} sent={result.sent} "
        f"failed={result.failed} skipped={result.skipped} errors={result.errors}"
    )


if __name__ == "__main__":
    cli()
