from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from libs.db.config import AsyncSessionLocal


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """
    Return the process-wide session factory.

    Workflow code opens its own short-lived session per transaction, so
    callers depend on the factory rather than a request-scoped session.
    """
    return AsyncSessionLocal
