"""
Database session configuration.

This module handles database engine creation, session management and the
transaction scope every workflow operation runs in.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from sqlalchemy.orm.exc import StaleDataError
from backend.app.core.config import settings
from backend.app.core.exceptions import StateConflictError, TransactionError, TransactionTimeoutError
from backend.app.core.reliability import deadline

# Create async engine
engine = create_async_engine(
    settings.database_url,
    echo=settings.db_echo,
    pool_size=settings.db_pool_size,
    max_overflow=settings.db_max_overflow,
    future=True,
)

# Create async session factory
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)

# Create declarative base for models
Base = declarative_base()


async def get_db():
    """
    FastAPI dependency for database sessions.
    
    Yields an async database session and ensures it's properly closed.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()


@asynccontextmanager
async def transaction(db: AsyncSession, timeout: Optional[float] = None) -> AsyncIterator[AsyncSession]:
    """
    Run a read-validate-write sequence as one unit.
    
    Commits when the block exits cleanly and rolls back on any error, so the
    first failing check aborts every write made inside the block. The block
    and its commit run under the transaction deadline.
    
    Raises:
        StateConflictError: a versioned row was changed by a concurrent commit
        TransactionTimeoutError: the deadline elapsed before the commit finished
        TransactionError: the store was unavailable or aborted the transaction
    """
    try:
        async with deadline(timeout):
            yield db
            await db.commit()
    except TransactionTimeoutError:
        await db.rollback()
        raise
    except StaleDataError as exc:
        await db.rollback()
        raise StateConflictError(
            "Record was modified by a concurrent request",
            details={"reason": str(exc)}
        ) from exc
    except (OperationalError, InterfaceError) as exc:
        await db.rollback()
        raise TransactionError() from exc
    except BaseException:
        await db.rollback()
        raise
