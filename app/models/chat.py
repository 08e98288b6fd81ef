# app/models/chat.py

from sqlalchemy import Column, Integer, DateTime, ForeignKey, UniqueConstraint
from datetime import datetime, UTC
from infrastructure.postgres_connection import Base


class Chat(Base):
    """Chat aggregate root. Participants and messages live in append-only link tables."""
    __tablename__ = "chats"

    id_chat = Column(Integer, primary_key=True, index=True, autoincrement=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False)

    def __repr__(self):
        return f"<Chat(id_chat={self.id_chat})>"


class ChatParticipant(Base):
    """Membership of a user in a chat; insertion order is participant order"""
    __tablename__ = "chat_participants"
    __table_args__ = (
        UniqueConstraint("chat_id", "user_id", name="uq_chat_participants_chat_user"),
    )

    id_chat_participant = Column(Integer, primary_key=True, autoincrement=True)
    chat_id = Column(Integer, ForeignKey("chats.id_chat"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id_user"), nullable=False, index=True)

    def __repr__(self):
        return f"<ChatParticipant(chat_id={self.chat_id}, user_id={self.user_id})>"


class ChatMessageLink(Base):
    """Position of a message in a chat. The autoincrement id is the ordering key."""
    __tablename__ = "chat_message_links"

    id_chat_message_link = Column(Integer, primary_key=True, autoincrement=True)
    chat_id = Column(Integer, ForeignKey("chats.id_chat"), nullable=False, index=True)
    # A message belongs to exactly one chat
    message_id = Column(Integer, ForeignKey("messages.id_message"), nullable=False, unique=True)

    def __repr__(self):
        return f"<ChatMessageLink(chat_id={self.chat_id}, message_id={self.message_id})>"
