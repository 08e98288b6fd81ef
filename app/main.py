# app/main.py

from contextlib import asynccontextmanager
from fastapi.middleware.cors import CORSMiddleware
from fastapi import FastAPI
from api.routes import chat, users
from api.socketio import ChatNamespace
from api.exception_handlers import register_exception_handlers
from config.settings import settings
from infrastructure.redis_connection import redis_connection, get_redis
from infrastructure.postgres_connection import postgres_connection
from infrastructure.room_broadcaster import RoomBroadcaster
from infrastructure.socketio_server import create_socketio_server
import socketio
import logging

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifespan events"""
    # Startup: Initialize connections
    await redis_connection.connect()
    await postgres_connection.connect()

    if settings.AUTO_CREATE_TABLES:
        await postgres_connection.create_tables()

    logger.info(f"{settings.APP_NAME} started")

    yield

    # Shutdown: close connections
    await postgres_connection.disconnect()
    await redis_connection.disconnect()


def create_app() -> FastAPI:
    """
    Build the FastAPI application together with its Socket.IO server

    The RoomBroadcaster is created once here and handed to both the HTTP
    routes (through app.state) and the /chat namespace.
    """
    app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)

    sio = create_socketio_server()
    broadcaster = RoomBroadcaster(sio, get_redis)
    sio.register_namespace(ChatNamespace(settings.CHAT_NAMESPACE, broadcaster))

    app.state.sio = sio
    app.state.broadcaster = broadcaster

    # Register domain exception handlers
    register_exception_handlers(app)

    # Health check endpoint
    @app.get("/health")
    async def health_check():
        """Health check endpoint for Docker and monitoring"""
        redis_up = await redis_connection.is_healthy()
        return {"status": "healthy", "redis": "up" if redis_up else "down"}

    # CORS configuration - can't use "*" with allow_credentials=True
    app.add_middleware(
        middleware_class=CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(users.users_router, prefix="/v1")
    app.include_router(chat.router, prefix="/v1")

    return app


fastapi_app = create_app()

# Wrap FastAPI app with Socket.IO
# Socket.IO handles /socket.io/* paths and passes everything else to FastAPI
app = socketio.ASGIApp(fastapi_app.state.sio, fastapi_app)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=settings.DEBUG)
