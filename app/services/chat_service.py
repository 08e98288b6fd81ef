# app/services/chat_service.py

from collections import defaultdict
from typing import List, Optional, Sequence
from datetime import datetime, UTC
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, func
from sqlalchemy.exc import IntegrityError
from models.chat import Chat, ChatParticipant, ChatMessageLink
from models.message import Message
from models.user import User
from schemas.chat_schema import (
    ChatResponse,
    ChatUserResponse,
    ChatLookupResult,
    MessageInChatResponse,
    MessagePayload
)
from exceptions.domain_exceptions import (
    UnknownParticipantException,
    UnknownUserException,
    ChatNotFoundException,
    MessageNotFoundException,
    MessageAlreadyInChatException
)
from services.message_service import MessageService
from services.user_directory import UserDirectory
from services.storage_guard import storage_guard
import logging

logger = logging.getLogger(__name__)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on the way back)"""
    return value.replace(tzinfo=UTC) if value.tzinfo is None else value.astimezone(UTC)


class ChatService:
    """
    Service for chats: creation, message append, participant management and lookups

    Ordering guarantee: a chat's messages are ordered by the id of their link
    row. Every append first runs an UPDATE on the chat row, which holds the row
    lock until commit, so concurrent appends to the same chat are serialized
    and the link ids follow commit order (last to commit is appended last).
    Appends to different chats never wait on each other.
    """

    @staticmethod
    async def create_chat(
        session: AsyncSession,
        participants: Sequence[str],
        messages: Sequence[MessagePayload]
    ) -> ChatResponse:
        """
        Create a chat with its participants and initial messages

        Every participant and every initial message is validated before
        anything is written, then the chat, its participants, its messages and
        their links are committed in one transaction. A failure leaves no chat
        and no orphan messages behind.

        Args:
            session: Database session
            participants: Usernames of the participants (duplicates collapse)
            messages: Initial messages, appended in the given order

        Returns:
            The created chat, enriched

        Raises:
            UnknownParticipantException: If a participant username does not resolve
            InvalidMessageException: If an initial message has empty text
            UnknownSenderException: If an initial message sender does not resolve
            StorageFailureException: If the database fails
        """
        usernames = list(dict.fromkeys(participants))

        async with storage_guard(session, "create chat"):
            users = await UserDirectory.lookup_many(session, usernames)
            missing = [username for username in usernames if username not in users]
            if missing:
                raise UnknownParticipantException(
                    message=f"No user found with username: {missing[0]}",
                    details={"usernames": missing}
                )

            staged_messages = [
                await MessageService.build_message(
                    session,
                    payload.msg,
                    payload.msg_from,
                    payload.msg_date_time
                )
                for payload in messages
            ]

            chat = Chat()
            session.add(chat)
            await session.flush()

            session.add_all([
                ChatParticipant(chat_id=chat.id_chat, user_id=users[username].id_user)
                for username in usernames
            ])
            session.add_all(staged_messages)
            await session.flush()

            session.add_all([
                ChatMessageLink(chat_id=chat.id_chat, message_id=message.id_message)
                for message in staged_messages
            ])
            await session.commit()

        logger.info(f"Created chat {chat.id_chat} with {len(usernames)} participants and {len(staged_messages)} messages")
        return await ChatService.get_chat(session, chat.id_chat)

    @staticmethod
    async def create_message(
        session: AsyncSession,
        msg: str,
        msg_from: str,
        msg_date_time: Optional[datetime] = None
    ) -> Message:
        """
        Create a standalone message (not attached to any chat)

        Raises:
            InvalidMessageException: If text is empty
            UnknownSenderException: If msg_from does not resolve
        """
        return await MessageService.save_message(session, msg, msg_from, msg_date_time)

    @staticmethod
    async def add_message_to_chat(
        session: AsyncSession,
        chat_id: int,
        message_id: int
    ) -> ChatResponse:
        """
        Append an existing message at the tail of a chat

        Args:
            session: Database session
            chat_id: ID of the chat
            message_id: ID of the message to append

        Returns:
            The updated chat, enriched

        Raises:
            MessageNotFoundException: If the message does not exist
            ChatNotFoundException: If the chat does not exist
            MessageAlreadyInChatException: If the message already belongs to a chat
        """
        async with storage_guard(session, "add message to chat"):
            message = await MessageService.get_message(session, message_id)
            if message is None:
                raise MessageNotFoundException(
                    message=f"No message found with ID: {message_id}",
                    details={"message_id": message_id}
                )

            await ChatService._touch_chat(session, chat_id)

            linked = await session.execute(
                select(ChatMessageLink.chat_id).where(ChatMessageLink.message_id == message_id)
            )
            linked_chat_id = linked.scalar_one_or_none()
            if linked_chat_id is not None:
                raise MessageAlreadyInChatException(
                    message="Message already belongs to a chat",
                    details={"message_id": message_id, "chat_id": linked_chat_id}
                )

            session.add(ChatMessageLink(chat_id=chat_id, message_id=message_id))
            try:
                await session.commit()
            except IntegrityError:
                # Linked concurrently by another request
                raise MessageAlreadyInChatException(
                    message="Message already belongs to a chat",
                    details={"message_id": message_id}
                )

        logger.info(f"Appended message {message_id} to chat {chat_id}")
        return await ChatService.get_chat(session, chat_id)

    @staticmethod
    async def send_message(
        session: AsyncSession,
        chat_id: int,
        msg: str,
        msg_from: str,
        msg_date_time: Optional[datetime] = None
    ) -> ChatResponse:
        """
        Create a message and append it to a chat

        The chat is checked first so that a missing chat never leaves an
        orphan message behind.

        Raises:
            ChatNotFoundException: If the chat does not exist
            InvalidMessageException: If text is empty
            UnknownSenderException: If msg_from does not resolve
        """
        async with storage_guard(session, "send message"):
            exists = await session.execute(select(Chat.id_chat).where(Chat.id_chat == chat_id))
            if exists.scalar_one_or_none() is None:
                raise ChatNotFoundException(
                    message=f"No chat found with ID: {chat_id}",
                    details={"chat_id": chat_id}
                )

        message = await ChatService.create_message(session, msg, msg_from, msg_date_time)
        return await ChatService.add_message_to_chat(session, chat_id, message.id_message)

    @staticmethod
    async def get_chat(session: AsyncSession, chat_id: int) -> ChatResponse:
        """
        Get a chat with its participants and enriched messages

        Raises:
            ChatNotFoundException: If the chat does not exist
        """
        async with storage_guard(session, "get chat"):
            chats = await ChatService._load_chats(session, [chat_id])

        if not chats:
            raise ChatNotFoundException(
                message=f"No chat found with ID: {chat_id}",
                details={"chat_id": chat_id}
            )
        return chats[0]

    @staticmethod
    async def get_chats_by_participants(
        session: AsyncSession,
        usernames: Sequence[str]
    ) -> ChatLookupResult:
        """
        Find every chat whose participants include all of the given usernames

        This is a superset match, not an exact-set match. An empty username
        list or an unknown username matches nothing.

        Returns:
            ChatLookupResult with ok=True and the matching chats, or ok=False
            and an error message when the lookup itself failed
        """
        wanted = list(dict.fromkeys(usernames))
        if not wanted:
            return ChatLookupResult(ok=True, chats=[])

        try:
            users = await UserDirectory.lookup_many(session, wanted)
            if len(users) != len(wanted):
                return ChatLookupResult(ok=True, chats=[])

            user_ids = [user.id_user for user in users.values()]
            query = (
                select(ChatParticipant.chat_id)
                .where(ChatParticipant.user_id.in_(user_ids))
                .group_by(ChatParticipant.chat_id)
                .having(func.count(func.distinct(ChatParticipant.user_id)) == len(user_ids))
                .order_by(ChatParticipant.chat_id)
            )
            result = await session.execute(query)
            chat_ids = list(result.scalars().all())

            chats = await ChatService._load_chats(session, chat_ids)
            return ChatLookupResult(ok=True, chats=chats)
        except Exception as e:
            await session.rollback()
            logger.exception(f"Failed to look up chats for participants {wanted}: {e}")
            return ChatLookupResult(ok=False, error=f"Error when retrieving chats: {e}")

    @staticmethod
    async def add_participant_to_chat(
        session: AsyncSession,
        chat_id: int,
        user_id: int
    ) -> ChatResponse:
        """
        Add a user to a chat's participants

        Adding a user that already participates is a no-op.

        Raises:
            ChatNotFoundException: If the chat does not exist
            UnknownUserException: If the user does not exist
        """
        async with storage_guard(session, "add participant to chat"):
            await ChatService._touch_chat(session, chat_id)

            user = await UserDirectory.get_by_id(session, user_id)
            if user is None:
                raise UnknownUserException(
                    message=f"No user found with ID: {user_id}",
                    details={"user_id": user_id}
                )

            await ChatService._insert_participant(session, chat_id, user_id)
            await session.commit()

        logger.info(f"Added user {user_id} to chat {chat_id}")
        return await ChatService.get_chat(session, chat_id)

    @staticmethod
    async def _touch_chat(session: AsyncSession, chat_id: int) -> None:
        """
        Bump updated_at with a keyed UPDATE, locking the chat row until commit

        Raises:
            ChatNotFoundException: If no row was updated
        """
        result = await session.execute(
            update(Chat)
            .where(Chat.id_chat == chat_id)
            .values(updated_at=datetime.now(UTC))
        )
        if result.rowcount == 0:
            raise ChatNotFoundException(
                message=f"No chat found with ID: {chat_id}",
                details={"chat_id": chat_id}
            )

    @staticmethod
    async def _insert_participant(session: AsyncSession, chat_id: int, user_id: int) -> None:
        """Insert a participant row, doing nothing if the pair already exists"""
        dialect = session.get_bind().dialect.name
        if dialect == "postgresql":
            from sqlalchemy.dialects.postgresql import insert
        elif dialect == "sqlite":
            from sqlalchemy.dialects.sqlite import insert
        else:
            existing = await session.execute(
                select(ChatParticipant.id_chat_participant).where(
                    ChatParticipant.chat_id == chat_id,
                    ChatParticipant.user_id == user_id
                )
            )
            if existing.scalar_one_or_none() is None:
                session.add(ChatParticipant(chat_id=chat_id, user_id=user_id))
            return

        statement = insert(ChatParticipant).values(chat_id=chat_id, user_id=user_id)
        await session.execute(
            statement.on_conflict_do_nothing(index_elements=["chat_id", "user_id"])
        )

    @staticmethod
    async def _load_chats(session: AsyncSession, chat_ids: Sequence[int]) -> List[ChatResponse]:
        """
        Load chats with participants and messages enriched at read time

        Senders are joined by username with an outer join, so a message whose
        sender no longer resolves gets user=None instead of failing the read.
        Three queries regardless of the number of chats.
        """
        if not chat_ids:
            return []

        chats_result = await session.execute(
            select(Chat)
            .where(Chat.id_chat.in_(chat_ids))
            .execution_options(populate_existing=True)
        )
        chats = {chat.id_chat: chat for chat in chats_result.scalars().all()}
        if not chats:
            return []

        participants_result = await session.execute(
            select(ChatParticipant.chat_id, ChatParticipant.user_id)
            .where(ChatParticipant.chat_id.in_(list(chats)))
            .order_by(ChatParticipant.id_chat_participant)
        )
        participants = defaultdict(list)
        for chat_id, user_id in participants_result.all():
            participants[chat_id].append(user_id)

        messages_result = await session.execute(
            select(ChatMessageLink.chat_id, Message, User.id_user, User.username)
            .join(Message, Message.id_message == ChatMessageLink.message_id)
            .outerjoin(User, User.username == Message.msg_from)
            .where(ChatMessageLink.chat_id.in_(list(chats)))
            .order_by(ChatMessageLink.id_chat_message_link)
        )
        messages = defaultdict(list)
        for chat_id, message, sender_id, sender_username in messages_result.all():
            messages[chat_id].append(
                MessageInChatResponse(
                    id=message.id_message,
                    msg=message.msg,
                    msg_from=message.msg_from,
                    msg_date_time=as_utc(message.msg_date_time),
                    type=message.type,
                    user=ChatUserResponse(id=sender_id, username=sender_username) if sender_id is not None else None
                )
            )

        return [
            ChatResponse(
                id=chat_id,
                participants=participants[chat_id],
                messages=messages[chat_id],
                created_at=as_utc(chats[chat_id].created_at),
                updated_at=as_utc(chats[chat_id].updated_at)
            )
            for chat_id in chat_ids
            if chat_id in chats
        ]
