from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import NullPool
from bizreports.core.config import settings
import logging

logger = logging.getLogger(__name__)


def _engine_options() -> dict:
    options = {
        "pool_pre_ping": True,
        "echo": settings.DEBUG,
    }
    if settings.ENVIRONMENT == "test" or settings.async_database_url.startswith("sqlite"):
        options["poolclass"] = NullPool
    else:
        options["pool_size"] = 10
        options["max_overflow"] = 20
    return options


# Async engine for application use
async_engine = create_async_engine(settings.async_database_url, **_engine_options())

# Async session for application
AsyncSessionLocal = async_sessionmaker(
    async_engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False
)

Base = declarative_base()

# Async dependency for application endpoints
async def get_async_db() -> AsyncSession:
    """Genera una sesión de base de datos asíncrona para endpoints."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception as e:
            logger.error(f"Database error: {e}")
            await session.rollback()
            raise
        finally:
            await session.close()


async def create_tables() -> None:
    """Crea las tablas declaradas (solo desarrollo, sin Alembic)."""
    async with async_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
