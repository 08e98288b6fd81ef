# app/api/socketio/chat_namespace.py

import socketio
from socketio.exceptions import ConnectionRefusedError
from typing import Any, Callable, Optional
from urllib.parse import parse_qs
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from infrastructure.postgres_connection import get_session_factory
from infrastructure.room_broadcaster import RoomBroadcaster
from services.user_directory import UserDirectory
from schemas.chat_schema import SocketErrorResponse
import logging

logger = logging.getLogger(__name__)


def extract_username(environ: dict, auth: Optional[dict] = None) -> Optional[str]:
    """
    Extract the trusted username handed over by the authentication layer

    Looks at the Socket.IO auth payload first, then the `username` query
    parameter of the handshake.
    """
    if isinstance(auth, dict) and auth.get('username'):
        return str(auth['username'])

    query_string = environ.get('QUERY_STRING', '')
    if query_string:
        params = parse_qs(query_string)
        username = params.get('username', [None])[0]
        if username:
            return username

    return None


def normalize_chat_id(chat_id: Any) -> Optional[str]:
    """Turn a client supplied chat id (int or numeric string) into a room name"""
    if chat_id is None or isinstance(chat_id, bool):
        return None
    try:
        return str(int(chat_id))
    except (TypeError, ValueError):
        return None


class ChatNamespace(socketio.AsyncNamespace):
    """Socket.IO namespace through which clients follow chat rooms"""

    def __init__(
        self,
        namespace: str,
        broadcaster: RoomBroadcaster,
        session_factory: Callable[[], async_sessionmaker[AsyncSession]] = get_session_factory
    ):
        super().__init__(namespace)
        self.broadcaster = broadcaster
        self._session_factory = session_factory

    async def on_connect(self, sid, environ, auth=None):
        """Accept connections for known usernames and join their personal room"""
        username = extract_username(environ, auth)
        if not username:
            logger.warning(f"Connection attempt without username from {sid} to {self.namespace}")
            raise ConnectionRefusedError('Username required')

        async with self._session_factory()() as session:
            user = await UserDirectory.lookup(session, username)

        if user is None:
            logger.warning(f"Connection attempt for unknown user '{username}' ({sid})")
            raise ConnectionRefusedError('Unknown user')

        await self.save_session(sid, {'user_id': user.id_user, 'username': user.username})
        await self.broadcaster.join(sid, RoomBroadcaster.user_room(user.id_user))
        logger.info(f"Client connected to {self.namespace}: {sid} (User: {user.id_user}, Username: {user.username})")

    async def on_disconnect(self, sid, reason=None):
        logger.info(f"Client disconnected from {self.namespace}: {sid}")
        try:
            await self.broadcaster.leave_all(sid)
        except Exception:
            logger.exception(f'Error cleaning up rooms for {sid}')

    async def on_joinChat(self, sid, chat_id=None):
        """Subscribe this connection to updates of a chat"""
        room = normalize_chat_id(chat_id)
        if room is None:
            error_response = SocketErrorResponse(message='Invalid chat id')
            await self.emit('error', error_response.model_dump(mode='json'), room=sid)
            return
        await self.broadcaster.join(sid, room)

    async def on_leaveChat(self, sid, chat_id=None):
        """Unsubscribe this connection from a chat; an absent chat id is ignored"""
        await self.broadcaster.leave(sid, normalize_chat_id(chat_id))
