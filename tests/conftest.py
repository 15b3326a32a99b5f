"""Test fixtures for the Domain Trust Service test suite."""

import os
from collections.abc import AsyncGenerator
from uuid import uuid4

import dns.resolver
import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Set test environment variables BEFORE importing app modules
os.environ.update({
    "DATABASE_URL": "sqlite+aiosqlite://",
    "PLATFORM_ID": "test-platform",
    "SPF_INCLUDE": "spf.test-platform.com",
    "DMARC_REPORT_ADDRESS": "dmarc@test-platform.com",
    "DKIM_SELECTOR": "mail",
    "DKIM_KEY_SIZE": "1024",
    "DNS_RETRY_ATTEMPTS": "2",
    "MONITOR_AUTOSTART": "false",
    "ENVIRONMENT": "test",
    "LOG_LEVEL": "WARNING",
})

from domain_trust.database import Base, get_session  # noqa: E402
from domain_trust.main import create_app  # noqa: E402
from domain_trust.schemas.domain import DnsRecord  # noqa: E402
from domain_trust.services.dns_verifier import DNSVerifier  # noqa: E402

# In-memory SQLite by default; point at PostgreSQL to run against the real store
TEST_DATABASE_URL = os.environ.get("TEST_DATABASE_URL", "sqlite+aiosqlite://")


def _create_test_engine():
    if not TEST_DATABASE_URL.startswith("sqlite"):
        return create_async_engine(TEST_DATABASE_URL, echo=False)

    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    # Let SQLAlchemy emit BEGIN itself so SAVEPOINTs behave
    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return engine


@pytest.fixture
async def db() -> AsyncGenerator[AsyncSession, None]:
    """Provide a database session on fresh tables that rolls back after each test."""
    engine = _create_test_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )
    async with factory() as session:
        yield session
        await session.rollback()
    await engine.dispose()


@pytest.fixture
def app():
    return create_app()


@pytest.fixture
async def client(app, db: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client with database session override."""

    async def override_get_session():
        yield db

    app.dependency_overrides[get_session] = override_get_session

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def tenant_id():
    return uuid4()


class FakeTxt:
    def __init__(self, value: str, chunk: int = 255):
        data = value.encode()
        self.strings = tuple(data[i:i + chunk] for i in range(0, len(data), chunk)) or (b"",)


class FakeName:
    def __init__(self, value: str):
        self.value = value

    def __str__(self) -> str:
        return self.value


class FakeCname:
    def __init__(self, target: str):
        self.target = FakeName(target)


class FakeMx:
    def __init__(self, exchange: str):
        self.exchange = FakeName(exchange)


class FakeResolver:
    """In-memory DNS zone with the ``resolve(name, rdtype)`` coroutine of dnspython."""

    def __init__(self):
        self.zone: dict[tuple[str, str], list] = {}
        self.errors: dict[tuple[str, str], Exception] = {}
        self.queries: list[tuple[str, str]] = []

    def add_txt(self, name: str, *values: str) -> None:
        self.zone.setdefault((name, "TXT"), []).extend(FakeTxt(v) for v in values)

    def add_cname(self, name: str, target: str) -> None:
        self.zone[(name, "CNAME")] = [FakeCname(target)]

    def add_mx(self, name: str, *exchanges: str) -> None:
        self.zone[(name, "MX")] = [FakeMx(e) for e in exchanges]

    def fail(self, name: str, rdtype: str, error: Exception) -> None:
        self.errors[(name, rdtype)] = error

    def publish(self, records: list[DnsRecord]) -> None:
        """Publish every record of a domain as it was generated."""
        for record in records:
            self.add_txt(record.name, record.value)

    def remove(self, name: str, rdtype: str = "TXT") -> None:
        self.zone.pop((name, rdtype), None)

    async def resolve(self, name: str, rdtype: str):
        self.queries.append((name, rdtype))
        key = (name, rdtype)
        if key in self.errors:
            raise self.errors[key]
        if key not in self.zone:
            raise dns.resolver.NXDOMAIN()
        return list(self.zone[key])


@pytest.fixture
def fake_resolver() -> FakeResolver:
    return FakeResolver()


@pytest.fixture
def fake_dns(fake_resolver: FakeResolver, monkeypatch) -> FakeResolver:
    """Route every service's DNS lookups to the in-memory zone."""
    verifier = DNSVerifier(resolver=fake_resolver, timeout=1, nameservers=[])
    monkeypatch.setattr("domain_trust.services.domain_service.dns_verifier", verifier)
    monkeypatch.setattr("domain_trust.services.deliverability_service.dns_verifier", verifier)
    return fake_resolver
