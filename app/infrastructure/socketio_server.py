# app/infrastructure/socketio_server.py

import socketio
from config.settings import settings
import logging

logger = logging.getLogger(__name__)


def create_socketio_server() -> socketio.AsyncServer:
    """
    Create the Socket.IO server

    With SOCKETIO_REDIS_URL set, emits go through Redis pub/sub so an event
    addressed to a connection reaches it whichever worker process holds it.
    """
    client_manager = None
    if settings.SOCKETIO_REDIS_URL:
        client_manager = socketio.AsyncRedisManager(settings.SOCKETIO_REDIS_URL)
        logger.info("Socket.IO using Redis client manager")

    return socketio.AsyncServer(
        async_mode='asgi',
        client_manager=client_manager,
        cors_allowed_origins=settings.CORS_ORIGINS,
        logger=settings.DEBUG,
        engineio_logger=False,
        ping_timeout=settings.SOCKETIO_PING_TIMEOUT,
        ping_interval=settings.SOCKETIO_PING_INTERVAL
    )
