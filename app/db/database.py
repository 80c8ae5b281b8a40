"""Database connection and session management."""
import logging
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker

from app.core.config import settings
from app.db.models import Base

logger = logging.getLogger(__name__)


def normalize_database_url(url: str) -> str:
    """Convert sync driver URLs to their async equivalents."""
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    if url.startswith("sqlite://"):
        return url.replace("sqlite://", "sqlite+aiosqlite://", 1)
    return url


def create_engine(url: Optional[str]) -> Optional[AsyncEngine]:
    """Create the async engine, or None when no database is configured."""
    if not url:
        logger.warning("[DATABASE] DATABASE_URL not set - event logging is disabled")
        return None
    return create_async_engine(normalize_database_url(url), echo=False, future=True)


engine = create_engine(settings.database_url)

AsyncSessionLocal: Optional[async_sessionmaker] = (
    async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )
    if engine is not None
    else None
)


async def init_db() -> bool:
    """
    Initialize database tables.

    Returns:
        True if the database is ready, False if it is unavailable
    """
    if engine is None:
        return False
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("[DATABASE] Connected, ready for event logging")
        return True
    except Exception as e:
        logger.warning(
            f"[DATABASE] Connection failed, continuing without event logging: "
            f"{type(e).__name__}: {e}"
        )
        return False


async def close_db() -> None:
    """Dispose the engine's connection pool."""
    if engine is not None:
        await engine.dispose()
