# app/infrastructure/postgres_connection.py

from sqlalchemy.ext.asyncio import create_async_engine, AsyncEngine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from sqlalchemy import text
from config.settings import settings
import logging

logger = logging.getLogger(__name__)


# Base class for SQLAlchemy models
Base = declarative_base()


class PostgresConnection:
    """PostgreSQL connection manager holding the async engine and session factory"""

    def __init__(self):
        self.engine: AsyncEngine | None = None
        self.session_factory: async_sessionmaker[AsyncSession] | None = None

    async def connect(self):
        """Connect to PostgreSQL"""
        if self.engine is not None:
            return  # Already connected

        try:
            self.engine = create_async_engine(
                settings.DATABASE_URL,
                echo=settings.DEBUG,  # Log SQL queries in debug mode
                pool_pre_ping=True,
                pool_size=10,
                max_overflow=20,
            )

            self.session_factory = async_sessionmaker(
                self.engine,
                class_=AsyncSession,
                expire_on_commit=False,
            )
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))

            logger.info(f"Connected to PostgreSQL at {settings.POSTGRES_HOST}:{settings.POSTGRES_PORT}/{settings.POSTGRES_DB}")
        except Exception as e:
            logger.error(f"Failed to connect to PostgreSQL: {e}")
            self.engine = None
            self.session_factory = None
            raise

    async def create_tables(self):
        """Create all tables known to Base.metadata (development helper, migrations are preferred)"""
        import models  # noqa: F401  - registers every model with Base.metadata

        async with self.get_engine().begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables ensured")

    async def disconnect(self):
        """Disconnect from PostgreSQL"""
        if self.engine:
            await self.engine.dispose()
            self.engine = None
            self.session_factory = None
            logger.info("Disconnected from PostgreSQL")

    def get_engine(self) -> AsyncEngine:
        """Get the SQLAlchemy async engine instance"""
        if not self.engine:
            raise RuntimeError("PostgreSQL engine is not connected. Call connect() first.")
        return self.engine

    def get_session_factory(self) -> async_sessionmaker[AsyncSession]:
        """Get the session factory for creating database sessions"""
        if not self.session_factory:
            raise RuntimeError("PostgreSQL session factory is not initialized. Call connect() first.")
        return self.session_factory


# Shared instance
postgres_connection = PostgresConnection()


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Get the session factory for creating database sessions"""
    return postgres_connection.get_session_factory()


async def get_db_session() -> AsyncSession:
    """
    Dependency for FastAPI routes to get a database session.

    Usage in routes:
        @router.get("/chat/{chat_id}")
        async def get_chat(chat_id: int, session: AsyncSession = Depends(get_db_session)):
            return await ChatService.get_chat(session, chat_id)
    """
    session_factory = get_session_factory()
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()
