# app/services/storage_guard.py

from contextlib import asynccontextmanager
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from exceptions.domain_exceptions import StorageFailureException
import logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def storage_guard(session: AsyncSession, operation: str):
    """
    Run a unit of work against the session, rolling back on any failure

    SQLAlchemy errors are translated into StorageFailureException; domain
    exceptions propagate unchanged after the rollback.

    Usage:
        async with storage_guard(session, "add message to chat"):
            ...
            await session.commit()
    """
    try:
        yield
    except SQLAlchemyError as e:
        await session.rollback()
        logger.error(f"Storage failure during {operation}: {e}")
        raise StorageFailureException(
            message=f"Storage failure during {operation}",
            details={"error": str(e)}
        ) from e
    except Exception:
        await session.rollback()
        raise
