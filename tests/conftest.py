"""
Global pytest configuration and fixtures for PartnerLogic tests.

Every test gets a fresh in-memory SQLite database, an email gateway and an
auth admin client backed by ``httpx.MockTransport``, and an HTTP client for
the full application. Callers are identified by the auth user id header.
"""

import os
from decimal import Decimal

# Configure settings before the package is imported
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE__URL", "sqlite:///:memory:")
os.environ.setdefault("OBSERVABILITY__LOG_FORMAT", "console")
os.environ.setdefault("OBSERVABILITY__LOG_LEVEL", "WARNING")

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import partnerlogic.models  # noqa: F401
from partnerlogic.auth.client import AuthAdminClient, get_auth_admin_client
from partnerlogic.auth.models import (
    AccountUserProfile,
    AdminProfile,
    PartnerManagerProfile,
    SupportUserProfile,
)
from partnerlogic.communications import EmailGateway, get_email_gateway
from partnerlogic.db import Base, get_async_session
from partnerlogic.main import create_application
from partnerlogic.partners.models import Partner
from partnerlogic.products.models import Product
from tests.helpers import RecordingTransport, make_partner


@pytest_asyncio.fixture
async def async_db_engine():
    """Async in-memory database engine with every table created."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,  # Required for SQLite in-memory async
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(async_db_engine) -> AsyncSession:
    """Async database session."""
    SessionMaker = async_sessionmaker(async_db_engine, expire_on_commit=False)
    async with SessionMaker() as session:
        yield session


@pytest.fixture
def email_transport() -> RecordingTransport:
    return RecordingTransport()


@pytest_asyncio.fixture
async def email_gateway(email_transport: RecordingTransport) -> EmailGateway:
    gateway = EmailGateway(
        functions_url="http://functions.test",
        api_key="test-key",
        enabled=True,
        transport=httpx.MockTransport(email_transport),
    )
    yield gateway
    await gateway.close()


@pytest.fixture
def auth_transport() -> RecordingTransport:
    return RecordingTransport(body={"id": "target-user"})


@pytest_asyncio.fixture
async def auth_admin_client(auth_transport: RecordingTransport) -> AuthAdminClient:
    client = AuthAdminClient(
        base_url="http://auth.test/auth/v1",
        service_role_key="service-key",
        transport=httpx.MockTransport(auth_transport),
    )
    yield client
    await client.close()


@pytest_asyncio.fixture
async def client(
    db_session: AsyncSession, email_gateway: EmailGateway, auth_admin_client: AuthAdminClient
):
    """Async HTTP client for the full application."""
    app = create_application()

    async def override_session():
        yield db_session

    app.dependency_overrides[get_async_session] = override_session
    app.dependency_overrides[get_email_gateway] = lambda: email_gateway
    app.dependency_overrides[get_auth_admin_client] = lambda: auth_admin_client

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as async_client:
        yield async_client


# ==========================================
# Profiles and partners
# ==========================================


@pytest_asyncio.fixture
async def admin(db_session: AsyncSession) -> AdminProfile:
    profile = AdminProfile(
        auth_user_id="admin-1", first_name="Ada", last_name="Admin", email="ada@example.com"
    )
    db_session.add(profile)
    await db_session.commit()
    return profile


@pytest_asyncio.fixture
async def partner_manager(db_session: AsyncSession) -> PartnerManagerProfile:
    profile = PartnerManagerProfile(
        auth_user_id="pm-1", first_name="Mona", last_name="Manager", email="mona@example.com"
    )
    db_session.add(profile)
    await db_session.commit()
    return profile


@pytest_asyncio.fixture
async def account_user(db_session: AsyncSession) -> AccountUserProfile:
    profile = AccountUserProfile(
        auth_user_id="acct-1", first_name="Avery", last_name="Accounts", email="avery@example.com"
    )
    db_session.add(profile)
    await db_session.commit()
    return profile


@pytest_asyncio.fixture
async def support_user(db_session: AsyncSession) -> SupportUserProfile:
    profile = SupportUserProfile(
        auth_user_id="support-1", first_name="Sam", last_name="Support", email="sam@example.com"
    )
    db_session.add(profile)
    await db_session.commit()
    return profile


@pytest_asyncio.fixture
async def partner(db_session: AsyncSession, partner_manager: PartnerManagerProfile) -> Partner:
    """Gold reseller managed by the partner manager."""
    return await make_partner(
        db_session, "partner-1", "pat@acme.example", partner_manager_id=partner_manager.id
    )


@pytest_asyncio.fixture
async def other_partner(db_session: AsyncSession) -> Partner:
    """Bronze reseller without a partner manager."""
    return await make_partner(
        db_session,
        "partner-2",
        "olly@other.example",
        tier="bronze",
        organization_name="Other Co",
        mdf_enabled=False,
        mdf_allocation=Decimal("0"),
    )


@pytest_asyncio.fixture
async def referral_partner(
    db_session: AsyncSession, partner_manager: PartnerManagerProfile
) -> Partner:
    """Silver referral partner managed by the partner manager."""
    return await make_partner(
        db_session,
        "referral-1",
        "rita@referrals.example",
        tier="silver",
        organization_type="referral",
        organization_name="Referral Partners Ltd",
        partner_manager_id=partner_manager.id,
    )


@pytest_asyncio.fixture
async def product(db_session: AsyncSession) -> Product:
    item = Product(name="Quality Suite", short_name="QS", description="QMS platform")
    db_session.add(item)
    await db_session.commit()
    return item


def pytest_configure(config):
    """Configure pytest."""
    config.addinivalue_line("markers", "unit: Unit test")
    config.addinivalue_line("markers", "integration: Integration test")
