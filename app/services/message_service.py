# app/services/message_service.py

from typing import Optional
from datetime import datetime, UTC
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from models.message import Message, MESSAGE_TYPE_DIRECT
from exceptions.domain_exceptions import InvalidMessageException, UnknownSenderException
from services.user_directory import UserDirectory
from services.storage_guard import storage_guard


class MessageService:
    """Message store: owns message identity and content"""

    @staticmethod
    def validate_text(msg: Optional[str]) -> None:
        """
        Raises:
            InvalidMessageException: If the message text is empty
        """
        if not msg:
            raise InvalidMessageException(message="Message text cannot be empty")

    @staticmethod
    async def build_message(
        session: AsyncSession,
        msg: str,
        msg_from: str,
        msg_date_time: Optional[datetime] = None
    ) -> Message:
        """
        Validate message data and build an unsaved Message

        Nothing is added to the session, so callers can stage several
        messages and write them together only once all of them are valid.

        Raises:
            InvalidMessageException: If text is empty
            UnknownSenderException: If msg_from does not resolve to a user
        """
        MessageService.validate_text(msg)

        sender = await UserDirectory.lookup(session, msg_from)
        if sender is None:
            raise UnknownSenderException(
                message=f"No user found with username: {msg_from}",
                details={"msg_from": msg_from}
            )

        return Message(
            msg=msg,
            msg_from=msg_from,
            msg_date_time=msg_date_time or datetime.now(UTC),
            type=MESSAGE_TYPE_DIRECT
        )

    @staticmethod
    async def save_message(
        session: AsyncSession,
        msg: str,
        msg_from: str,
        msg_date_time: Optional[datetime] = None
    ) -> Message:
        """
        Persist a new message that is not yet attached to any chat

        Args:
            session: Database session
            msg: Message text, must be non-empty
            msg_from: Sender username, must resolve to a user
            msg_date_time: Send time, defaults to now

        Returns:
            Created message
        """
        async with storage_guard(session, "create message"):
            message = await MessageService.build_message(session, msg, msg_from, msg_date_time)
            session.add(message)
            await session.commit()
            await session.refresh(message)
            return message

    @staticmethod
    async def get_message(session: AsyncSession, message_id: int) -> Optional[Message]:
        """Return the message with the given id, or None"""
        result = await session.execute(select(Message).where(Message.id_message == message_id))
        return result.scalar_one_or_none()
