# app/infrastructure/room_broadcaster.py

from typing import Callable, Iterable, Optional, Set, Union
from redis.asyncio import Redis
from schemas.chat_schema import ChatResponse, ChatUpdateEvent, ChatUpdateType
from config.settings import settings
import logging

logger = logging.getLogger(__name__)

RoomId = Union[str, int]


class RoomBroadcaster:
    """
    Maps rooms (chat ids and personal user channels) to subscribed connections
    and delivers chat update events to them.

    Membership lives in Redis sets so that join/leave from concurrent handlers
    (and from several worker processes) never corrupt it:
    - chat_room:{room} -> set of connection sids subscribed to the room
    - chat_connection:{sid} -> set of rooms the connection joined (for cleanup)

    Delivery is best-effort: a connection that fails to receive an event is
    logged and skipped. The broadcaster does not authorize; callers decide who
    may join which room.
    """

    ROOM_KEY_PREFIX = "chat_room:"
    CONNECTION_KEY_PREFIX = "chat_connection:"
    USER_ROOM_PREFIX = "user:"

    def __init__(
        self,
        sio,
        get_redis: Callable[[], Redis],
        namespace: str = settings.CHAT_NAMESPACE,
        event_name: str = settings.CHAT_UPDATE_EVENT
    ):
        """
        Args:
            sio: Socket.IO server used to emit events to connections
            get_redis: Callable returning the Redis client (resolved on each use,
                so the broadcaster can be built before Redis connects)
            namespace: Socket.IO namespace the connections live in
            event_name: Event name used for chat updates
        """
        self.sio = sio
        self._get_redis = get_redis
        self.namespace = namespace
        self.event_name = event_name

    @classmethod
    def _room_key(cls, room: RoomId) -> str:
        return f"{cls.ROOM_KEY_PREFIX}{room}"

    @classmethod
    def _connection_key(cls, sid: str) -> str:
        return f"{cls.CONNECTION_KEY_PREFIX}{sid}"

    @classmethod
    def user_room(cls, user_id: int) -> str:
        """Personal room of a user, used to announce newly created chats"""
        return f"{cls.USER_ROOM_PREFIX}{user_id}"

    async def join(self, sid: str, room: RoomId) -> None:
        """Subscribe a connection to a room. Joining twice is the same as joining once."""
        redis = self._get_redis()
        async with redis.pipeline(transaction=True) as pipe:
            pipe.sadd(self._room_key(room), sid)
            pipe.sadd(self._connection_key(sid), str(room))
            await pipe.execute()
        logger.info(f"Connection {sid} joined room {room}")

    async def leave(self, sid: str, room: Optional[RoomId]) -> None:
        """Unsubscribe a connection from a room. No-op if room is None or not joined."""
        if room is None:
            return
        redis = self._get_redis()
        async with redis.pipeline(transaction=True) as pipe:
            pipe.srem(self._room_key(room), sid)
            pipe.srem(self._connection_key(sid), str(room))
            await pipe.execute()
        logger.info(f"Connection {sid} left room {room}")

    async def leave_all(self, sid: str) -> None:
        """Remove a connection from every room it joined (called on disconnect)"""
        redis = self._get_redis()
        rooms = await redis.smembers(self._connection_key(sid))
        async with redis.pipeline(transaction=True) as pipe:
            for room in rooms:
                pipe.srem(self._room_key(room), sid)
            pipe.delete(self._connection_key(sid))
            await pipe.execute()
        if rooms:
            logger.info(f"Connection {sid} removed from {len(rooms)} rooms")

    async def members(self, room: RoomId) -> Set[str]:
        """Snapshot of the connections currently subscribed to a room"""
        return set(await self._get_redis().smembers(self._room_key(room)))

    async def broadcast(
        self,
        room: RoomId,
        event: ChatUpdateEvent,
        skip_sid: Optional[str] = None
    ) -> int:
        """
        Deliver an event to every connection subscribed to a room

        Members are read once at call time; connections joining while the
        broadcast runs may or may not receive this event.

        Args:
            room: Room to deliver to
            event: Chat update to deliver
            skip_sid: Connection that triggered the event, excluded if given

        Returns:
            Number of connections the event was handed to
        """
        payload = event.model_dump(mode='json', by_alias=True)
        try:
            members = await self.members(room)
        except Exception as e:
            logger.error(f"Could not read members of room {room}, dropping {event.type} event: {e}")
            return 0

        delivered = 0
        for sid in sorted(members):
            if sid == skip_sid:
                continue
            try:
                await self.sio.emit(self.event_name, payload, room=sid, namespace=self.namespace)
                delivered += 1
            except Exception as e:
                logger.warning(f"Failed to deliver {event.type} for room {room} to {sid}: {e}")
        return delivered

    async def notify_chat_update(
        self,
        room: RoomId,
        update_type: ChatUpdateType,
        chat: ChatResponse,
        skip_sid: Optional[str] = None
    ) -> int:
        """Build a chatUpdate event for a chat and broadcast it to one room"""
        return await self.broadcast(room, ChatUpdateEvent(type=update_type, chat=chat), skip_sid=skip_sid)

    async def notify_chat_created(self, chat: ChatResponse, user_ids: Optional[Iterable[int]] = None) -> int:
        """Announce a new chat on the personal room of each participant"""
        delivered = 0
        for user_id in (user_ids if user_ids is not None else chat.participants):
            delivered += await self.notify_chat_update(self.user_room(user_id), "created", chat)
        return delivered
