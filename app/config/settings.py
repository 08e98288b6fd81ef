# app/config/settings.py

from pydantic_settings import BaseSettings
from pydantic import ConfigDict
from typing import Optional


class Settings(BaseSettings):
    model_config = ConfigDict(
        env_file=".env",
        case_sensitive=True
    )

    # Redis Configuration (room membership)
    REDIS_URL: Optional[str] = None  # e.g. redis://:password@redis:6379/0, overrides the fields below
    REDIS_SOCKET_TIMEOUT: float = 5.0
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_PASSWORD: Optional[str] = None
    REDIS_DECODE_RESPONSES: bool = True

    # PostgreSQL Configuration
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"
    POSTGRES_DB: str = "chat_db"

    # Application Configuration
    APP_NAME: str = "Chat Backend"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"
    AUTO_CREATE_TABLES: bool = False  # Run metadata.create_all on startup (development only)
    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",  # React/Next.js default
        "http://localhost:5173",  # Vite default
        "http://127.0.0.1:3000",
        "http://127.0.0.1:5173",
    ]

    # Socket.IO Configuration
    CHAT_NAMESPACE: str = "/chat"
    CHAT_UPDATE_EVENT: str = "chatUpdate"
    SOCKETIO_REDIS_URL: Optional[str] = None  # Enables cross-process emits when set
    SOCKETIO_PING_TIMEOUT: int = 60
    SOCKETIO_PING_INTERVAL: int = 25

    @property
    def DATABASE_URL(self) -> str:
        """Construct PostgreSQL connection URL for SQLAlchemy"""
        return f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"


settings = Settings()
