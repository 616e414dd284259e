"""Async database session factory and FastAPI dependency.

PostgreSQL in production (the same database the auth provider fronts);
SQLite via aiosqlite for local development.
"""

from collections.abc import AsyncGenerator
from pathlib import Path

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from storefront.config import get_settings


def _build_engine(url: str, echo: bool = False):
    if url.startswith("sqlite:///"):
        url = url.replace("sqlite:///", "sqlite+aiosqlite:///", 1)

    if not url.startswith("sqlite"):
        return create_async_engine(url, echo=echo, pool_pre_ping=True)

    db_path = url.split("///")[-1]
    if db_path == ":memory:":
        # One shared connection, otherwise every checkout sees an empty database
        return create_async_engine(
            url, echo=echo, poolclass=StaticPool, connect_args={"check_same_thread": False}
        )
    if db_path:
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    return create_async_engine(url, echo=echo, connect_args={"check_same_thread": False})


settings = get_settings()
engine = _build_engine(settings.database_url, echo=settings.debug)
async_session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


def is_sqlite() -> bool:
    return engine.url.get_backend_name() == "sqlite"


async def create_all() -> None:
    """Create tables directly. Only used for SQLite; PostgreSQL uses Alembic."""
    from storefront.models import Base

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency that yields an async database session."""
    async with async_session_factory() as session:
        try:
            yield session
        finally:
            await session.close()
