"""Async database engine (the shared connection pool)."""

from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlmodel import SQLModel

from app.core.config import get_settings

settings = get_settings()


def _engine_kwargs(url: str) -> dict:
    # SQLite drivers do not accept pool sizing arguments.
    if url.startswith("sqlite"):
        return {"echo": settings.db_echo}
    return {
        "echo": settings.db_echo,
        "pool_size": settings.db_pool_size,
        "max_overflow": settings.db_max_overflow,
        "pool_pre_ping": True,
    }


engine = create_async_engine(settings.database_url, **_engine_kwargs(settings.database_url))


def get_engine() -> AsyncEngine:
    """FastAPI dependency returning the process-wide engine."""
    return engine


async def init_db(bind: AsyncEngine | None = None) -> None:
    """Create all tables. Schema migrations are out of scope."""
    async with (bind or engine).begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
