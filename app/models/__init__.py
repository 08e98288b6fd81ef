# app/models/__init__.py

from models.user import User
from models.message import Message
from models.chat import Chat, ChatParticipant, ChatMessageLink

__all__ = ["User", "Message", "Chat", "ChatParticipant", "ChatMessageLink"]
