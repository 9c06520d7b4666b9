"""
Tests for CLI commands.

Commands that touch the database run against a temporary SQLite file; the
others get mocked dependencies.
"""

import asyncio
from unittest.mock import AsyncMock, Mock, patch

import pytest
from click.testing import CliRunner
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from partnerlogic.auth.models import AdminProfile
from partnerlogic.cli import (
    CLIDependencies,
    cli,
    create_admin,
    init_database,
    run_migrations,
    seed_currencies,
    seed_tiers,
)
from partnerlogic.currencies.models import Currency
from partnerlogic.currencies.registry import CURRENCIES
from partnerlogic.db import Base
from partnerlogic.exceptions import DuplicateError
from partnerlogic.tiers import DEFAULT_TIERS
from partnerlogic.tiers.models import TierSetting

pytestmark = pytest.mark.integration


def build_cli_dependencies(**overrides) -> CLIDependencies:
    """Construct a CLI dependency bundle for testing."""
    defaults = {
        "session_factory": Mock(),
        "init_db": AsyncMock(),
        "subprocess_run": Mock(),
    }
    defaults.update(overrides)
    return CLIDependencies(**defaults)


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def sqlite_engine(tmp_path):
    """File-backed engine; each command runs in its own event loop."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'cli.db'}", poolclass=NullPool)

    async def _create():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    asyncio.run(_create())
    yield engine
    asyncio.run(engine.dispose())


@pytest.fixture
def db_deps(sqlite_engine):
    deps = build_cli_dependencies(
        session_factory=async_sessionmaker(sqlite_engine, expire_on_commit=False)
    )
    with patch("partnerlogic.cli._get_cli_dependencies", return_value=deps):
        yield deps


def count_rows(engine, model) -> int:
    async def _count():
        async with async_sessionmaker(engine)() as session:
            return (await session.execute(select(func.count()).select_from(model))).scalar()

    return asyncio.run(_count())


def test_cli_lists_commands(runner):
    result = runner.invoke(cli, ["--help"])

    assert result.exit_code == 0
    for command in ("init-db", "seed-tiers", "seed-currencies", "create-admin", "serve"):
        assert command in result.output


@patch("partnerlogic.cli._get_cli_dependencies")
def test_init_database(mock_get_deps, runner):
    deps = build_cli_dependencies()
    mock_get_deps.return_value = deps

    result = runner.invoke(init_database)

    assert result.exit_code == 0
    assert "Database initialized successfully!" in result.output
    deps.init_db.assert_awaited_once_with()


def test_seed_tiers_is_idempotent(runner, db_deps, sqlite_engine):
    first = runner.invoke(seed_tiers)
    second = runner.invoke(seed_tiers)

    assert first.exit_code == 0
    assert f"Seeded {len(DEFAULT_TIERS)} tiers" in first.output
    assert second.exit_code == 0
    assert count_rows(sqlite_engine, TierSetting) == len(DEFAULT_TIERS)


def test_seed_currencies(runner, db_deps, sqlite_engine):
    first = runner.invoke(seed_currencies)
    second = runner.invoke(seed_currencies)

    assert f"Added {len(CURRENCIES)} currencies" in first.output
    assert "Added 0 currencies" in second.output
    assert count_rows(sqlite_engine, Currency) == len(CURRENCIES)


def test_create_admin(runner, db_deps, sqlite_engine):
    args = [
        "--auth-user-id",
        "admin-1",
        "--email",
        "ada@example.com",
        "--first-name",
        "Ada",
        "--last-name",
        "Admin",
    ]

    result = runner.invoke(create_admin, args)

    assert result.exit_code == 0
    assert "Admin ada@example.com created successfully!" in result.output
    assert count_rows(sqlite_engine, AdminProfile) == 1

    duplicate = runner.invoke(create_admin, args)
    assert duplicate.exit_code == 1
    assert isinstance(duplicate.exception, DuplicateError)


@patch("partnerlogic.cli._get_cli_dependencies")
def test_run_migrations_success(mock_get_deps, runner):
    deps = build_cli_dependencies(
        subprocess_run=Mock(return_value=Mock(returncode=0, stdout="upgraded", stderr=""))
    )
    mock_get_deps.return_value = deps

    result = runner.invoke(run_migrations)

    assert result.exit_code == 0
    assert "Migrations completed successfully!" in result.output
    deps.subprocess_run.assert_called_once_with(
        ["alembic", "upgrade", "head"], capture_output=True, text=True
    )


@patch("partnerlogic.cli._get_cli_dependencies")
def test_run_migrations_failure(mock_get_deps, runner):
    deps = build_cli_dependencies(
        subprocess_run=Mock(return_value=Mock(returncode=1, stdout="", stderr="bad revision"))
    )
    mock_get_deps.return_value = deps

    result = runner.invoke(run_migrations)

    assert result.exit_code == 1
    assert "Migration failed!" in result.output
    assert "bad revision" in result.output
