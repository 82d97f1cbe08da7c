from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from libs.common.config import get_settings


def build_engine(database_url: str = None) -> AsyncEngine:
    """
    Create the async engine for ``database_url`` (defaults to DATABASE_URL).

    Pool sizing only applies to server databases; SQLite (local runs) uses
    SQLAlchemy's default pool.
    """
    settings = get_settings()
    url = make_url(database_url or settings.DATABASE_URL)

    options = {
        # echo=True for local dev to see SQL queries
        "echo": settings.ENVIRONMENT == "local",
    }
    if url.get_backend_name() != "sqlite":
        options.update(
            pool_pre_ping=True,  # Test connections before using
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
            pool_timeout=settings.DB_POOL_TIMEOUT,
            pool_recycle=settings.DB_POOL_RECYCLE,
        )
    return create_async_engine(url, **options)


engine = build_engine()

# Create async session factory
AsyncSessionLocal = async_sessionmaker(
    bind=engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
)
