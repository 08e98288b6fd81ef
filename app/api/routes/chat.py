# app/api/routes/chat.py

from fastapi import APIRouter, Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession
from infrastructure.postgres_connection import get_db_session
from infrastructure.room_broadcaster import RoomBroadcaster
from services.chat_service import ChatService
from schemas.chat_schema import (
    ChatResponse,
    CreateChatRequest,
    AddMessageRequest,
    AddParticipantRequest
)
from typing import Optional
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chat", tags=["chat"])


def get_broadcaster(request: Request) -> RoomBroadcaster:
    """Dependency returning the RoomBroadcaster built by the application factory"""
    return request.app.state.broadcaster


@router.post("/createChat", response_model=ChatResponse)
async def create_chat(
    request: CreateChatRequest,
    session: AsyncSession = Depends(get_db_session),
    broadcaster: RoomBroadcaster = Depends(get_broadcaster)
):
    """
    Create a chat with participants and optional initial messages

    Either the whole chat (participants, messages) is stored or nothing is.
    Participants connected to the /chat namespace receive a `created` update
    on their personal room.
    """
    chat = await ChatService.create_chat(
        session=session,
        participants=request.participants,
        messages=request.messages
    )
    await broadcaster.notify_chat_created(chat)
    return chat


@router.get("/getChatsByUser/{username}", response_model=list[ChatResponse])
async def get_chats_by_user(
    username: str,
    session: AsyncSession = Depends(get_db_session)
):
    """
    Get every chat the user participates in

    Always answers with a list; a failed lookup is logged and reported as empty.
    """
    result = await ChatService.get_chats_by_participants(session=session, usernames=[username])
    if not result.ok:
        logger.warning(f"Chat lookup for {username} failed, returning empty list: {result.error}")
    return result.chats


@router.post("/{chat_id}/addMessage", response_model=ChatResponse)
async def add_message_to_chat(
    chat_id: int,
    request: AddMessageRequest,
    socket_id: Optional[str] = Header(None, alias="X-Socket-Id"),
    session: AsyncSession = Depends(get_db_session),
    broadcaster: RoomBroadcaster = Depends(get_broadcaster)
):
    """
    Send a message to a chat

    Subscribers of the chat room receive a `newMessage` update. The connection
    named in the X-Socket-Id header (the sender's own socket) is skipped.
    """
    chat = await ChatService.send_message(
        session=session,
        chat_id=chat_id,
        msg=request.msg,
        msg_from=request.msg_from,
        msg_date_time=request.msg_date_time
    )
    await broadcaster.notify_chat_update(chat_id, "newMessage", chat, skip_sid=socket_id)
    return chat


@router.get("/{chat_id}", response_model=ChatResponse)
async def get_chat(
    chat_id: int,
    session: AsyncSession = Depends(get_db_session)
):
    """Get a chat with its participants and enriched messages"""
    return await ChatService.get_chat(session=session, chat_id=chat_id)


@router.post("/{chat_id}/addParticipant", response_model=ChatResponse)
async def add_participant_to_chat(
    chat_id: int,
    request: AddParticipantRequest,
    session: AsyncSession = Depends(get_db_session)
):
    """Add a user to a chat; adding an existing participant changes nothing"""
    return await ChatService.add_participant_to_chat(
        session=session,
        chat_id=chat_id,
        user_id=request.user_id
    )
