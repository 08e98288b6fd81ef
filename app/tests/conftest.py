"""
Pytest configuration and fixtures for testing
"""
import os
import pytest
import httpx
from typing import AsyncGenerator
from unittest.mock import AsyncMock, MagicMock
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool
from infrastructure.postgres_connection import Base, get_db_session
from infrastructure.room_broadcaster import RoomBroadcaster
from models.user import User


# Test database URL - using file-based SQLite to avoid in-memory connection issues
TEST_DATABASE_FILE = "./test.db"
TEST_DATABASE_URL = f"sqlite+aiosqlite:///{TEST_DATABASE_FILE}"


@pytest.fixture(scope="function")
async def db_engine():
    """Create a test database engine"""
    # Import all models to ensure they're registered with Base.metadata
    import models  # noqa: F401

    if os.path.exists(TEST_DATABASE_FILE):
        os.remove(TEST_DATABASE_FILE)

    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=NullPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()

    if os.path.exists(TEST_DATABASE_FILE):
        os.remove(TEST_DATABASE_FILE)


@pytest.fixture(scope="function")
def session_factory(db_engine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test engine"""
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session"""
    async with session_factory() as session:
        yield session
        await session.rollback()


async def _create_user(session: AsyncSession, username: str) -> User:
    user = User(username=username)
    session.add(user)
    await session.commit()
    await session.refresh(user)
    return user


@pytest.fixture
async def alice(db_session: AsyncSession) -> User:
    """Create user alice"""
    return await _create_user(db_session, "alice")


@pytest.fixture
async def bob(db_session: AsyncSession) -> User:
    """Create user bob"""
    return await _create_user(db_session, "bob")


@pytest.fixture
async def carol(db_session: AsyncSession) -> User:
    """Create user carol"""
    return await _create_user(db_session, "carol")


@pytest.fixture
async def redis_client():
    """Create a test Redis client using fakeredis"""
    import fakeredis.aioredis

    redis = fakeredis.aioredis.FakeRedis(decode_responses=True)

    yield redis

    # Cleanup
    await redis.flushall()
    await redis.aclose()


@pytest.fixture
def mock_sio():
    """Socket.IO server stand-in recording emitted events"""
    sio = MagicMock()
    sio.emit = AsyncMock()
    return sio


@pytest.fixture
def broadcaster(mock_sio, redis_client) -> RoomBroadcaster:
    """RoomBroadcaster backed by fakeredis and the mocked Socket.IO server"""
    return RoomBroadcaster(
        mock_sio,
        lambda: redis_client,
        namespace="/chat",
        event_name="chatUpdate"
    )


@pytest.fixture
async def api_client(db_session: AsyncSession, broadcaster: RoomBroadcaster) -> AsyncGenerator[httpx.AsyncClient, None]:
    """HTTP client against the FastAPI app with test database and broadcaster"""
    from main import create_app

    app = create_app()
    app.state.broadcaster = broadcaster

    async def override_get_db_session():
        yield db_session

    app.dependency_overrides[get_db_session] = override_get_db_session

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
