"""
Centralized Test Configuration.
"""

import pytest
from datetime import date
from decimal import Decimal
from types import SimpleNamespace

from httpx import AsyncClient, ASGITransport
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from backend.app.main import app
from backend.app.db.session import get_db, Base
from backend.app.core.jwt import create_access_token
from backend.app.models.enums import UserRole
from backend.app.models.owner import Owner
from backend.app.models.tenant import Tenant
from backend.app.models.apartment import Apartment
from backend.app.models.contract import Contract

# Setup In-Memory Test Database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


def _on_connect(dbapi_conn, connection_record):
    """Enable foreign key constraints and hand transaction control to SQLAlchemy (SAVEPOINT support)."""
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()
    dbapi_conn.isolation_level = None


def _on_begin(conn):
    conn.exec_driver_sql("BEGIN")


@pytest.fixture
async def engine():
    """Fresh in-memory database per test."""
    test_engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    event.listen(test_engine.sync_engine, "connect", _on_connect)
    event.listen(test_engine.sync_engine, "begin", _on_begin)

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture(autouse=True)
def apply_overrides(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    yield
    app.dependency_overrides = {}


@pytest.fixture
async def client():
    """Async client for testing."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
async def db_session(session_factory):
    """Session for service-level tests. Do not hold it open across API calls."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def make_directory(session_factory):
    """
    Factory seeding owner -> apartment -> contract (+ tenant) and committing.

    Defaults: contract 2024-01-01..2025-12-31, rent 100000, no rate overrides.
    """
    async def _make(
        owner_rate=None,
        contract_rate=None,
        monthly_rent=Decimal("100000"),
        start_date=date(2024, 1, 1),
        end_date=date(2025, 12, 31),
        with_contract=True,
        owner_id=None,
    ):
        async with session_factory() as session:
            if owner_id is None:
                owner = Owner(name="Laura Owner", email="laura@example.com", commission_rate=owner_rate)
                session.add(owner)
                await session.flush()
                owner_id = owner.id

            tenant = Tenant(name="Tomas Tenant", email="tomas@example.com")
            apartment = Apartment(owner_id=owner_id, unit="4B", address="Calle Falsa 123")
            session.add_all([tenant, apartment])
            await session.flush()

            contract_id = None
            if with_contract:
                contract = Contract(
                    apartment_id=apartment.id,
                    tenant_id=tenant.id,
                    start_date=start_date,
                    end_date=end_date,
                    monthly_rent=monthly_rent,
                    commission_rate=contract_rate,
                    is_active=True,
                )
                session.add(contract)
                await session.flush()
                contract_id = contract.id

            result = SimpleNamespace(
                owner_id=owner_id,
                tenant_id=tenant.id,
                apartment_id=apartment.id,
                contract_id=contract_id,
            )
            await session.commit()
            return result

    return _make


@pytest.fixture
async def directory(make_directory):
    return await make_directory()


def _headers(user_id: int, username: str, role: UserRole) -> dict:
    token = create_access_token({"sub": username, "user_id": user_id, "role": role.value})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers():
    return _headers(1, "admin", UserRole.ADMIN)


@pytest.fixture
def operator_headers():
    return _headers(2, "operator", UserRole.OPERATOR)


@pytest.fixture
def admin_actor():
    return {"sub": "admin", "user_id": 1, "role": UserRole.ADMIN.value}
