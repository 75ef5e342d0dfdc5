"""
Database engine and session factory
"""
from typing import Any

from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker
from sqlalchemy.engine import make_url

from core.config import DatabaseSettings, settings
from infrastructure.models import Base


ASYNC_DRIVERS = {
    "postgresql": "postgresql+asyncpg",
    "postgres": "postgresql+asyncpg",
    "sqlite": "sqlite+aiosqlite",
}


def _build_async_url(database_url: str) -> str:
    """Swap in the async driver (asyncpg / aiosqlite) when the URL names none."""
    url = make_url(database_url)
    if "+" in url.drivername:
        return database_url
    if url.drivername not in ASYNC_DRIVERS:
        raise ValueError(f"Unsupported database driver: {url.drivername}. Use postgresql or sqlite")
    return url.set(drivername=ASYNC_DRIVERS[url.drivername]).render_as_string(hide_password=False)


def _engine_options(config: DatabaseSettings) -> dict[str, Any]:
    options: dict[str, Any] = {"echo": config.echo}
    # No pool sizing for SQLite (development/tests)
    if not make_url(config.url).drivername.startswith("sqlite"):
        options.update(
            pool_size=config.pool_size,
            max_overflow=config.max_overflow,
            pool_pre_ping=True,
        )
    return options


engine = create_async_engine(_build_async_url(settings.database.url), **_engine_options(settings.database))

# Entities are read after commit (notifications, logs)
AsyncSessionLocal = async_sessionmaker(bind=engine, expire_on_commit=False)


async def create_tables():
    """Create the tables from the models (development only)."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
