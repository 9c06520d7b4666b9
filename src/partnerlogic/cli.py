"""
CLI management commands for PartnerLogic.
"""

import asyncio
from collections.abc import Callable, Coroutine
from dataclasses import dataclass
from typing import Any

import click

from partnerlogic.auth.models import ProfileCreate, Role
from partnerlogic.auth.service import ProfileService
from partnerlogic.currencies.service import CurrencyService
from partnerlogic.db import AsyncSessionLocal, init_db
from partnerlogic.settings import settings
from partnerlogic.tiers.service import TierService


@dataclass
class CLIDependencies:
    """Bundle of injectable dependencies used by CLI commands."""

    session_factory: Callable[[], Any]
    init_db: Callable[[], Coroutine[Any, Any, None]]
    subprocess_run: Callable[..., Any]


def _get_cli_dependencies() -> CLIDependencies:
    """Return the default dependency bundle for CLI commands."""
    import subprocess

    return CLIDependencies(
        session_factory=AsyncSessionLocal,
        init_db=init_db,
        subprocess_run=subprocess.run,
    )


@click.group()
def cli() -> None:
    """PartnerLogic CLI."""
    pass


@cli.command("init-db")
def init_database() -> None:
    """Create every table that does not exist yet."""
    deps = _get_cli_dependencies()
    click.echo("Initializing database...")
    asyncio.run(deps.init_db())
    click.echo("Database initialized successfully!")


@cli.command("seed-tiers")
def seed_tiers() -> None:
    """Store the default tier settings."""
    deps = _get_cli_dependencies()

    async def _seed() -> int:
        async with deps.session_factory() as session:
            tiers = await TierService(session).initialize_defaults()
            return len(tiers)

    count = asyncio.run(_seed())
    click.echo(f"Seeded {count} tiers")


@cli.command("seed-currencies")
def seed_currencies() -> None:
    """Add every currency from the static registry that is not stored yet."""
    deps = _get_cli_dependencies()

    async def _seed() -> int:
        async with deps.session_factory() as session:
            return await CurrencyService(session).seed_registry()

    count = asyncio.run(_seed())
    click.echo(f"Added {count} currencies")


@cli.command("create-admin")
@click.option("--auth-user-id", prompt=True, help="Hosted auth user id")
@click.option("--email", prompt=True, help="Admin email")
@click.option("--first-name", prompt=True, help="First name")
@click.option("--last-name", prompt=True, help="Last name")
def create_admin(auth_user_id: str, email: str, first_name: str, last_name: str) -> None:
    """Create an admin profile for an existing auth user."""
    deps = _get_cli_dependencies()

    async def _create_admin() -> None:
        async with deps.session_factory() as session:
            await ProfileService(session, Role.ADMIN).create(
                ProfileCreate(
                    auth_user_id=auth_user_id,
                    email=email,
                    first_name=first_name,
                    last_name=last_name,
                )
            )

    asyncio.run(_create_admin())
    click.echo(f"Admin {email} created successfully!")


@cli.command("run-migrations")
def run_migrations() -> None:
    """Run database migrations."""
    deps = _get_cli_dependencies()
    click.echo("Running database migrations...")
    result = deps.subprocess_run(["alembic", "upgrade", "head"], capture_output=True, text=True)

    if result.returncode == 0:
        click.echo("Migrations completed successfully!")
        click.echo(result.stdout)
    else:
        click.echo("Migration failed!")
        click.echo(result.stderr)
        raise SystemExit(1)


@cli.command()
@click.option("--host", default=None, help="Bind host")
@click.option("--port", default=None, type=int, help="Bind port")
@click.option("--reload/--no-reload", default=None, help="Reload on code changes")
def serve(host: str | None, port: int | None, reload: bool | None) -> None:
    """Run the API with uvicorn."""
    import uvicorn

    uvicorn.run(
        "partnerlogic.main:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=settings.is_development if reload is None else reload,
        log_level=settings.observability.log_level.value.lower(),
    )


if __name__ == "__main__":
    cli()
