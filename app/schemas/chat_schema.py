# app/schemas/chat_schema.py

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel
from datetime import datetime
from typing import Literal, Optional


class CamelModel(BaseModel):
    """Base schema exposing camelCase field names on the wire"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# Response Models

class ChatUserResponse(CamelModel):
    """Read-time sender projection attached to a message in a chat"""
    id: int
    username: str


class MessageResponse(CamelModel):
    """Schema for a stored message"""
    id: int
    msg: str
    msg_from: str
    msg_date_time: datetime
    type: Literal["direct"] = "direct"


class MessageInChatResponse(MessageResponse):
    """Message enriched with its sender; user is None when the sender no longer resolves"""
    user: Optional[ChatUserResponse] = None


class ChatResponse(CamelModel):
    """Schema for a fully enriched chat"""
    id: int
    participants: list[int]
    messages: list[MessageInChatResponse]
    created_at: datetime
    updated_at: datetime


class ChatLookupResult(BaseModel):
    """Tagged result of a participant lookup, distinguishing 'no chats' from 'lookup failed'"""
    ok: bool
    chats: list[ChatResponse] = Field(default_factory=list)
    error: Optional[str] = None


# Request Models

class MessagePayload(CamelModel):
    """Initial message supplied when creating a chat"""
    msg: str
    msg_from: str
    msg_date_time: Optional[datetime] = None


class CreateChatRequest(CamelModel):
    """Schema for POST /chat/createChat"""
    participants: list[str]
    messages: list[MessagePayload]


class AddMessageRequest(CamelModel):
    """Schema for POST /chat/{chat_id}/addMessage"""
    msg: str = Field(..., min_length=1)
    msg_from: str = Field(..., min_length=1)
    msg_date_time: Optional[datetime] = None

    @model_validator(mode="before")
    @classmethod
    def reject_null_date(cls, data):
        """msgDateTime may be omitted, but an explicit null is rejected"""
        if isinstance(data, dict):
            for key in ("msgDateTime", "msg_date_time"):
                if key in data and data[key] is None:
                    raise ValueError("msgDateTime cannot be null")
        return data


class AddParticipantRequest(CamelModel):
    """Schema for POST /chat/{chat_id}/addParticipant"""
    user_id: int


# Socket.IO Event DTOs

ChatUpdateType = Literal["created", "newMessage"]


class ChatUpdateEvent(CamelModel):
    """Payload of the chatUpdate event delivered to subscribed connections"""
    type: ChatUpdateType
    chat: ChatResponse


class SocketErrorResponse(BaseModel):
    """Schema for error responses emitted via Socket.IO"""
    message: str
    errors: Optional[list] = None
