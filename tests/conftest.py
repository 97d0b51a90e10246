"""
Shared fixtures.

Every test gets a fresh in-memory SQLite database. The FastAPI app is driven
in-process through httpx's ASGITransport with get_db overridden, so no server
and no PostgreSQL are needed.
"""
import os

os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"

from datetime import date
from types import SimpleNamespace

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from guru_erp import models  # noqa: F401
from guru_erp.core.security import create_access_token, get_password_hash
from guru_erp.database import Base, custom_json_dumps, get_db
from guru_erp.main import app
from guru_erp.models import (
    Customer, Machine, MachineType, Part, User, UserRole, UserStatus,
)


PASSWORD = "Secret@123"


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
        json_serializer=custom_json_dumps,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture
async def seed(session_factory):
    """
    Baseline records:
    admin, manager, two active technicians and one inactive technician;
    one customer with a machine; two parts and one machine type.
    """
    async with session_factory() as session:
        def user(name, email, role, status=UserStatus.ACTIVE):
            u = User(
                name=name,
                email=email,
                password_hash=get_password_hash(PASSWORD),
                role=role.value,
                status=status.value,
            )
            session.add(u)
            return u

        admin = user("Admin User", "admin@gurutech.in", UserRole.ADMIN)
        manager = user("Manager Boss", "manager@gurutech.in", UserRole.MANAGER)
        tech = user("Ramesh Tech", "ramesh@gurutech.in", UserRole.TECHNICIAN)
        tech2 = user("Suresh Tech", "suresh@gurutech.in", UserRole.TECHNICIAN)
        inactive_tech = user("Old Tech", "old@gurutech.in", UserRole.TECHNICIAN, UserStatus.INACTIVE)

        machine_type = MachineType(model_name="GURU-RO-PRO", warranty_months=12, price=18500)
        customer = Customer(name="Anitha Kumar", phone="9876543210", customer_type="GURU_INSTALLED")
        session.add_all([machine_type, customer])
        await session.flush()

        machine = Machine(
            customer_id=customer.id,
            machine_type_id=machine_type.id,
            model_name="GURU-RO-PRO",
            installation_date=date(2024, 1, 15),
            warranty_expiry=date(2025, 1, 15),
            amc_active=True,
            amc_expiry=date(2025, 1, 15),
        )
        membrane = Part(name="RO Membrane 100GPD", category="Filters", price=1200, stock_quantity=15)
        sediment = Part(name="Sediment Filter", category="Filters", price=350, stock_quantity=2)
        session.add_all([machine, membrane, sediment])
        await session.commit()

        return SimpleNamespace(
            admin=admin,
            manager=manager,
            tech=tech,
            tech2=tech2,
            inactive_tech=inactive_tech,
            customer=customer,
            machine=machine,
            machine_type=machine_type,
            membrane=membrane,
            sediment=sediment,
        )


@pytest_asyncio.fixture
async def db(session_factory, seed):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(session_factory, seed):
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


def auth_headers(user: User) -> dict:
    token = create_access_token(str(user.id), additional_claims={"role": user.role})
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def headers(seed):
    return SimpleNamespace(
        admin=auth_headers(seed.admin),
        manager=auth_headers(seed.manager),
        tech=auth_headers(seed.tech),
        tech2=auth_headers(seed.tech2),
    )
