from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy import MetaData
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import DeclarativeBase

from worktime.core.config import settings

IS_SQLITE = settings.DATABASE_URL.startswith("sqlite")

# Feste Constraint-Namen, damit Alembic-Migrationen auf SQLite und PostgreSQL gleich aussehen
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

# SQL-Ausgabe läuft über den Logger "sqlalchemy.engine" (siehe core/logging.py)
engine = create_async_engine(
    settings.DATABASE_URL,
    connect_args={"check_same_thread": False} if IS_SQLITE else {},
    pool_pre_ping=not IS_SQLITE,
)

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    metadata = MetaData(naming_convention=NAMING_CONVENTION)


async def get_db():
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


@asynccontextmanager
async def session_scope() -> AsyncIterator[AsyncSession]:
    """Eigene Session für Hintergrund-Läufe (Celery), außerhalb eines Requests."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


async def create_tables():
    """Legt Tabellen und Schreibschutz-Trigger an (lokale Entwicklung ohne Alembic)."""
    import worktime.models  # noqa – alle Models registrieren
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
