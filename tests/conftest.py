"""
Shared pytest fixtures for the compliance backend tests.

Uses SQLite in-memory with StaticPool so all sessions share one connection,
meaning data written in one session is visible to others (important for HTTP client tests).
"""
import uuid
from datetime import datetime, timezone

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

import worktime.models  # noqa – registers all SQLAlchemy models with Base.metadata
from worktime.core.config import settings
from worktime.core.database import Base, get_db
from worktime.core.security import create_access_token
from worktime.main import app
from worktime.models.tenant import Tenant
from worktime.models.time_entry import TimeEntry
from worktime.models.user import User

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


# ── Shared engine (function-scoped: fresh DB per test) ───────────────────────

@pytest_asyncio.fixture
async def engine():
    """Creates a fresh in-memory SQLite engine per test with a shared connection pool."""
    eng = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,          # single shared connection → all sessions see same data
    )
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield eng

    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await eng.dispose()


@pytest_asyncio.fixture
async def db(engine) -> AsyncSession:
    """Async DB session for direct data inspection inside tests."""
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session


@pytest.fixture(autouse=True)
def report_dir(tmp_path, monkeypatch):
    """Report-Artefakte landen im tmp-Verzeichnis des Tests."""
    path = tmp_path / "reports"
    monkeypatch.setattr(settings, "REPORT_STORAGE_DIR", str(path))
    return path


# ── HTTP client fixture ───────────────────────────────────────────────────────

@pytest_asyncio.fixture
async def client(engine) -> AsyncClient:
    """
    FastAPI test client with get_db overridden to use the test engine.
    Each request gets its own session (proper handling) but shares the same
    underlying connection via StaticPool.
    """
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as c:
        yield c

    app.dependency_overrides.clear()


# ── Tenant + User fixtures ────────────────────────────────────────────────────

async def _create_user(db, tenant, email: str, role: str) -> User:
    u = User(
        id=uuid.uuid4(),
        tenant_id=tenant.id,
        email=email,
        role=role,
        is_active=True,
        created_at=datetime.now(timezone.utc),
    )
    db.add(u)
    await db.commit()
    await db.refresh(u)
    return u


@pytest_asyncio.fixture
async def tenant(db) -> Tenant:
    t = Tenant(
        id=uuid.uuid4(),
        name="Test GmbH",
        slug=f"test-{uuid.uuid4().hex[:8]}",
        is_active=True,
        created_at=datetime.now(timezone.utc),
        updated_at=datetime.now(timezone.utc),
    )
    db.add(t)
    await db.commit()
    await db.refresh(t)
    return t


@pytest_asyncio.fixture
async def other_tenant(db) -> Tenant:
    t = Tenant(
        id=uuid.uuid4(),
        name="Andere GmbH",
        slug=f"other-{uuid.uuid4().hex[:8]}",
        is_active=True,
    )
    db.add(t)
    await db.commit()
    await db.refresh(t)
    return t


@pytest_asyncio.fixture
async def admin_user(db, tenant) -> User:
    return await _create_user(db, tenant, "admin@test.de", "admin")


@pytest_asyncio.fixture
async def manager_user(db, tenant) -> User:
    return await _create_user(db, tenant, "manager@test.de", "manager")


@pytest_asyncio.fixture
async def employee_user(db, tenant) -> User:
    return await _create_user(db, tenant, "employee@test.de", "employee")


@pytest_asyncio.fixture
def admin_token(admin_user) -> str:
    return create_access_token(admin_user.id, admin_user.tenant_id, "admin")


@pytest_asyncio.fixture
def manager_token(manager_user) -> str:
    return create_access_token(manager_user.id, manager_user.tenant_id, "manager")


@pytest_asyncio.fixture
def employee_token(employee_user) -> str:
    return create_access_token(employee_user.id, employee_user.tenant_id, "employee")


# ── Helper ────────────────────────────────────────────────────────────────────

def auth_headers(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def utc(year: int, month: int, day: int, hour: int = 0, minute: int = 0) -> datetime:
    return datetime(year, month, day, hour, minute, tzinfo=timezone.utc)


async def add_entry(
    db,
    user: User,
    clock_in: datetime,
    clock_out: datetime | None,
    break_minutes: int | None = None,
) -> TimeEntry:
    """Zeiteintrag direkt in der DB anlegen (Zeiterfassung ist extern)."""
    entry = TimeEntry(
        tenant_id=user.tenant_id,
        user_id=user.id,
        actual_clock_in=clock_in,
        actual_clock_out=clock_out,
        break_minutes=break_minutes,
    )
    db.add(entry)
    await db.commit()
    await db.refresh(entry)
    return entry
