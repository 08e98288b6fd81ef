"""
Unit tests for ChatService

Tests cover:
- Creating chats (atomicity, participant resolution)
- Creating messages
- Appending messages to chats (ordering, dangling references)
- Sending messages (create + append)
- Getting chats with read-time enrichment
- Looking up chats by participants
- Adding participants
"""
import asyncio
import pytest
from datetime import datetime, timedelta, UTC
from unittest.mock import AsyncMock, patch
from sqlalchemy import select, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from models.chat import Chat, ChatMessageLink
from models.message import Message
from models.user import User
from schemas.chat_schema import MessagePayload
from services.chat_service import ChatService
from services.user_directory import UserDirectory
from exceptions.domain_exceptions import (
    UnknownParticipantException,
    UnknownSenderException,
    UnknownUserException,
    InvalidMessageException,
    ChatNotFoundException,
    MessageNotFoundException,
    MessageAlreadyInChatException
)


async def count_rows(session: AsyncSession, model) -> int:
    result = await session.execute(select(func.count()).select_from(model))
    return result.scalar()


@pytest.mark.unit
class TestCreateChat:
    """Test cases for create_chat method"""

    async def test_create_chat_with_initial_message(
        self,
        db_session: AsyncSession,
        alice: User,
        bob: User
    ):
        """Chat with two participants and one message is returned fully enriched"""
        # Act
        chat = await ChatService.create_chat(
            session=db_session,
            participants=["alice", "bob"],
            messages=[MessagePayload(msg="hi", msg_from="alice")]
        )

        # Assert
        assert chat.participants == [alice.id_user, bob.id_user]
        assert len(chat.messages) == 1
        message = chat.messages[0]
        assert message.msg == "hi"
        assert message.msg_from == "alice"
        assert message.type == "direct"
        assert message.user is not None
        assert message.user.id == alice.id_user
        assert message.user.username == "alice"

    async def test_create_chat_without_messages(
        self,
        db_session: AsyncSession,
        alice: User,
        bob: User
    ):
        """A chat can be created with no initial messages"""
        chat = await ChatService.create_chat(db_session, ["alice", "bob"], [])

        assert chat.messages == []
        assert chat.participants == [alice.id_user, bob.id_user]

    async def test_create_chat_collapses_duplicate_participants(
        self,
        db_session: AsyncSession,
        alice: User,
        bob: User
    ):
        """The same username listed twice becomes one participant"""
        chat = await ChatService.create_chat(db_session, ["alice", "bob", "alice"], [])

        assert chat.participants == [alice.id_user, bob.id_user]

    async def test_create_chat_keeps_initial_message_order(
        self,
        db_session: AsyncSession,
        alice: User,
        bob: User
    ):
        """Initial messages are stored in the order they were given"""
        chat = await ChatService.create_chat(
            db_session,
            ["alice", "bob"],
            [
                MessagePayload(msg="first", msg_from="alice"),
                MessagePayload(msg="second", msg_from="bob"),
                MessagePayload(msg="third", msg_from="alice"),
            ]
        )

        assert [m.msg for m in chat.messages] == ["first", "second", "third"]
        assert [m.user.username for m in chat.messages] == ["alice", "bob", "alice"]

    async def test_create_chat_unknown_participant(
        self,
        db_session: AsyncSession,
        alice: User
    ):
        """Unknown participant fails the whole creation and stores nothing"""
        with pytest.raises(UnknownParticipantException) as exc_info:
            await ChatService.create_chat(
                db_session,
                ["alice", "ghost"],
                [MessagePayload(msg="hi", msg_from="alice")]
            )

        assert exc_info.value.message == "No user found with username: ghost"
        assert exc_info.value.details["usernames"] == ["ghost"]
        assert await count_rows(db_session, Chat) == 0
        assert await count_rows(db_session, Message) == 0

    async def test_create_chat_invalid_message_is_atomic(
        self,
        db_session: AsyncSession,
        alice: User,
        bob: User
    ):
        """One empty message among valid ones leaves no chat and no messages"""
        with pytest.raises(InvalidMessageException):
            await ChatService.create_chat(
                db_session,
                ["alice", "bob"],
                [
                    MessagePayload(msg="valid", msg_from="alice"),
                    MessagePayload(msg="", msg_from="bob"),
                ]
            )

        assert await count_rows(db_session, Chat) == 0
        assert await count_rows(db_session, Message) == 0
        assert await count_rows(db_session, ChatMessageLink) == 0

    async def test_create_chat_unknown_sender_is_atomic(
        self,
        db_session: AsyncSession,
        alice: User,
        bob: User
    ):
        """A message from an unknown sender leaves no chat and no messages"""
        with pytest.raises(UnknownSenderException):
            await ChatService.create_chat(
                db_session,
                ["alice", "bob"],
                [
                    MessagePayload(msg="valid", msg_from="alice"),
                    MessagePayload(msg="who am i", msg_from="ghost"),
                ]
            )

        assert await count_rows(db_session, Chat) == 0
        assert await count_rows(db_session, Message) == 0


@pytest.mark.unit
class TestCreateMessage:
    """Test cases for create_message method"""

    async def test_create_message_success(self, db_session: AsyncSession, alice: User):
        """Message is persisted unattached with a default send time"""
        before = datetime.now(UTC).replace(tzinfo=None) - timedelta(seconds=5)

        message = await ChatService.create_message(db_session, "hello", "alice")

        assert message.id_message is not None
        assert message.msg == "hello"
        assert message.msg_from == "alice"
        assert message.type == "direct"
        assert message.msg_date_time.replace(tzinfo=None) >= before
        assert await count_rows(db_session, ChatMessageLink) == 0

    async def test_create_message_with_explicit_time(self, db_session: AsyncSession, alice: User):
        """Given send time is kept"""
        sent_at = datetime(2025, 1, 1, 12, 30, tzinfo=UTC)

        message = await ChatService.create_message(db_session, "hello", "alice", sent_at)

        assert message.msg_date_time.replace(tzinfo=None) == datetime(2025, 1, 1, 12, 30)

    async def test_create_message_empty_text(self, db_session: AsyncSession, alice: User):
        """Empty text is rejected before touching storage"""
        with pytest.raises(InvalidMessageException) as exc_info:
            await ChatService.create_message(db_session, "", "alice")

        assert exc_info.value.status_code == 400
        assert await count_rows(db_session, Message) == 0

    async def test_create_message_unknown_sender(self, db_session: AsyncSession):
        """Sender must exist"""
        with pytest.raises(UnknownSenderException) as exc_info:
            await ChatService.create_message(db_session, "hello", "ghost")

        assert exc_info.value.message == "No user found with username: ghost"
        assert await count_rows(db_session, Message) == 0


@pytest.mark.unit
class TestAddMessageToChat:
    """Test cases for add_message_to_chat method"""

    async def test_add_message_appends_at_tail(
        self,
        db_session: AsyncSession,
        alice: User,
        bob: User
    ):
        """Appended message is last and enriched with its sender"""
        chat = await ChatService.create_chat(
            db_session, ["alice", "bob"], [MessagePayload(msg="hi", msg_from="alice")]
        )
        message = await ChatService.create_message(db_session, "hey", "bob")

        updated = await ChatService.add_message_to_chat(db_session, chat.id, message.id_message)

        assert [m.msg for m in updated.messages] == ["hi", "hey"]
        assert updated.messages[-1].id == message.id_message
        assert updated.messages[-1].user.username == "bob"

    async def test_add_message_keeps_insertion_order_not_send_time(
        self,
        db_session: AsyncSession,
        alice: User,
        bob: User
    ):
        """Order is append order even when an older timestamp arrives later"""
        chat = await ChatService.create_chat(db_session, ["alice", "bob"], [])
        newer = await ChatService.create_message(db_session, "newer", "alice", datetime(2025, 6, 1, tzinfo=UTC))
        older = await ChatService.create_message(db_session, "older", "bob", datetime(2024, 1, 1, tzinfo=UTC))

        await ChatService.add_message_to_chat(db_session, chat.id, newer.id_message)
        updated = await ChatService.add_message_to_chat(db_session, chat.id, older.id_message)

        assert [m.msg for m in updated.messages] == ["newer", "older"]

    async def test_many_appends_lose_and_duplicate_nothing(
        self,
        db_session: AsyncSession,
        alice: User,
        bob: User
    ):
        """N appends grow the chat by exactly N, each message once"""
        chat = await ChatService.create_chat(
            db_session, ["alice", "bob"], [MessagePayload(msg="start", msg_from="alice")]
        )
        message_ids = []
        for i in range(10):
            sender = "alice" if i % 2 == 0 else "bob"
            message = await ChatService.create_message(db_session, f"message {i}", sender)
            message_ids.append(message.id_message)
            await ChatService.add_message_to_chat(db_session, chat.id, message.id_message)

        updated = await ChatService.get_chat(db_session, chat.id)

        assert len(updated.messages) == 11
        ids = [m.id for m in updated.messages]
        assert len(set(ids)) == len(ids)
        assert ids[1:] == message_ids

    async def test_concurrent_appends_lose_and_duplicate_nothing(
        self,
        db_session: AsyncSession,
        session_factory,
        alice: User,
        bob: User
    ):
        """N sends racing on separate sessions grow the chat by exactly N"""
        chat = await ChatService.create_chat(
            db_session, ["alice", "bob"], [MessagePayload(msg="start", msg_from="alice")]
        )

        async def send(i: int):
            async with session_factory() as session:
                sender = "alice" if i % 2 == 0 else "bob"
                return await ChatService.send_message(session, chat.id, f"message {i}", sender)

        results = await asyncio.gather(*(send(i) for i in range(20)), return_exceptions=True)

        assert [r for r in results if isinstance(r, Exception)] == []
        updated = await ChatService.get_chat(db_session, chat.id)
        assert len(updated.messages) == 21
        ids = [m.id for m in updated.messages]
        assert len(set(ids)) == len(ids)
        assert sorted(m.msg for m in updated.messages[1:]) == sorted(f"message {i}" for i in range(20))

    async def test_add_message_unknown_message(
        self,
        db_session: AsyncSession,
        alice: User,
        bob: User
    ):
        """Unknown message id fails and leaves the chat unchanged"""
        chat = await ChatService.create_chat(
            db_session, ["alice", "bob"], [MessagePayload(msg="hi", msg_from="alice")]
        )

        with pytest.raises(MessageNotFoundException) as exc_info:
            await ChatService.add_message_to_chat(db_session, chat.id, 99999)

        assert exc_info.value.message == "No message found with ID: 99999"
        unchanged = await ChatService.get_chat(db_session, chat.id)
        assert len(unchanged.messages) == 1

    async def test_add_message_unknown_chat(self, db_session: AsyncSession, alice: User):
        """Unknown chat id fails and the message stays unattached"""
        message = await ChatService.create_message(db_session, "hello", "alice")

        with pytest.raises(ChatNotFoundException) as exc_info:
            await ChatService.add_message_to_chat(db_session, 99999, message.id_message)

        assert exc_info.value.message == "No chat found with ID: 99999"
        assert await count_rows(db_session, ChatMessageLink) == 0

    async def test_message_belongs_to_one_chat_only(
        self,
        db_session: AsyncSession,
        alice: User,
        bob: User,
        carol: User
    ):
        """A message already in a chat cannot be appended to another one"""
        first = await ChatService.create_chat(db_session, ["alice", "bob"], [])
        second = await ChatService.create_chat(db_session, ["alice", "carol"], [])
        message = await ChatService.create_message(db_session, "hello", "alice")
        await ChatService.add_message_to_chat(db_session, first.id, message.id_message)

        with pytest.raises(MessageAlreadyInChatException) as exc_info:
            await ChatService.add_message_to_chat(db_session, second.id, message.id_message)

        assert exc_info.value.status_code == 409
        assert exc_info.value.details["chat_id"] == first.id
        assert (await ChatService.get_chat(db_session, second.id)).messages == []

    async def test_add_message_bumps_updated_at(
        self,
        db_session: AsyncSession,
        alice: User,
        bob: User
    ):
        """Appending refreshes the chat's updated_at"""
        chat = await ChatService.create_chat(db_session, ["alice", "bob"], [])
        message = await ChatService.create_message(db_session, "hello", "alice")

        updated = await ChatService.add_message_to_chat(db_session, chat.id, message.id_message)

        assert updated.updated_at >= chat.updated_at
        assert updated.created_at == chat.created_at


@pytest.mark.unit
class TestSendMessage:
    """Test cases for send_message method"""

    async def test_send_message_success(self, db_session: AsyncSession, alice: User, bob: User):
        """Message is created and appended in one call"""
        chat = await ChatService.create_chat(db_session, ["alice", "bob"], [])

        updated = await ChatService.send_message(db_session, chat.id, "yo", "bob")

        assert len(updated.messages) == 1
        assert updated.messages[0].user.username == "bob"

    async def test_send_message_unknown_chat_leaves_no_orphan(self, db_session: AsyncSession, alice: User):
        """Missing chat is detected before the message is written"""
        with pytest.raises(ChatNotFoundException):
            await ChatService.send_message(db_session, 99999, "hello", "alice")

        assert await count_rows(db_session, Message) == 0

    async def test_send_message_unknown_sender(self, db_session: AsyncSession, alice: User, bob: User):
        """Unknown sender fails and the chat is unchanged"""
        chat = await ChatService.create_chat(db_session, ["alice", "bob"], [])

        with pytest.raises(UnknownSenderException):
            await ChatService.send_message(db_session, chat.id, "hello", "ghost")

        assert (await ChatService.get_chat(db_session, chat.id)).messages == []


@pytest.mark.unit
class TestGetChat:
    """Test cases for get_chat method"""

    async def test_get_chat_success(self, db_session: AsyncSession, alice: User, bob: User):
        """Stored chat is returned with enriched messages"""
        created = await ChatService.create_chat(
            db_session, ["alice", "bob"], [MessagePayload(msg="hi", msg_from="alice")]
        )

        chat = await ChatService.get_chat(db_session, created.id)

        assert chat == created

    async def test_timestamps_are_utc_on_every_read(self, db_session: AsyncSession, alice: User, bob: User):
        """Freshly created and reloaded chats carry the same UTC-aware timestamps"""
        sent_at = datetime(2025, 1, 1, 12, 30, tzinfo=UTC)
        created = await ChatService.create_chat(
            db_session, ["alice", "bob"], [MessagePayload(msg="hi", msg_from="alice", msg_date_time=sent_at)]
        )

        reloaded = await ChatService.get_chat(db_session, created.id)

        for chat in (created, reloaded):
            assert chat.created_at.tzinfo is not None
            assert chat.updated_at.tzinfo is not None
            assert chat.messages[0].msg_date_time == sent_at
        assert created.model_dump(mode='json', by_alias=True) == reloaded.model_dump(mode='json', by_alias=True)

    async def test_get_chat_not_found(self, db_session: AsyncSession):
        """Unknown chat id raises ChatNotFoundException"""
        with pytest.raises(ChatNotFoundException) as exc_info:
            await ChatService.get_chat(db_session, 12345)

        assert exc_info.value.status_code == 404

    async def test_get_chat_degrades_enrichment_for_unresolvable_sender(
        self,
        db_session: AsyncSession,
        alice: User,
        bob: User
    ):
        """A sender that no longer resolves yields user=None instead of an error"""
        chat = await ChatService.create_chat(
            db_session,
            ["alice", "bob"],
            [
                MessagePayload(msg="from alice", msg_from="alice"),
                MessagePayload(msg="from bob", msg_from="bob"),
            ]
        )
        bob.username = "robert"
        await db_session.commit()

        reloaded = await ChatService.get_chat(db_session, chat.id)

        assert reloaded.messages[0].user.username == "alice"
        assert reloaded.messages[1].msg_from == "bob"
        assert reloaded.messages[1].user is None


@pytest.mark.unit
class TestGetChatsByParticipants:
    """Test cases for get_chats_by_participants method"""

    async def _create_three_chats(self, session: AsyncSession):
        ab = await ChatService.create_chat(session, ["alice", "bob"], [])
        ac = await ChatService.create_chat(session, ["alice", "carol"], [])
        bc = await ChatService.create_chat(session, ["bob", "carol"], [])
        return ab, ac, bc

    async def test_single_participant_superset_match(
        self,
        db_session: AsyncSession,
        alice: User,
        bob: User,
        carol: User
    ):
        """Every chat containing alice is returned, and only those"""
        ab, ac, bc = await self._create_three_chats(db_session)

        result = await ChatService.get_chats_by_participants(db_session, ["alice"])

        assert result.ok is True
        assert [chat.id for chat in result.chats] == [ab.id, ac.id]

    async def test_all_participants_must_be_present(
        self,
        db_session: AsyncSession,
        alice: User,
        bob: User,
        carol: User
    ):
        """Multiple usernames narrow the match to chats containing all of them"""
        ab, ac, bc = await self._create_three_chats(db_session)
        abc = await ChatService.create_chat(db_session, ["alice", "bob", "carol"], [])

        result = await ChatService.get_chats_by_participants(db_session, ["bob", "carol"])

        assert [chat.id for chat in result.chats] == [bc.id, abc.id]

    async def test_unknown_username_matches_nothing(
        self,
        db_session: AsyncSession,
        alice: User,
        bob: User,
        carol: User
    ):
        """An unknown username yields an empty successful result"""
        await self._create_three_chats(db_session)

        result = await ChatService.get_chats_by_participants(db_session, ["alice", "ghost"])

        assert result.ok is True
        assert result.chats == []

    async def test_empty_username_list_matches_nothing(self, db_session: AsyncSession, alice: User, bob: User):
        """No usernames means no chats"""
        await ChatService.create_chat(db_session, ["alice", "bob"], [])

        result = await ChatService.get_chats_by_participants(db_session, [])

        assert result.ok is True
        assert result.chats == []

    async def test_chats_are_enriched(self, db_session: AsyncSession, alice: User, bob: User):
        """Returned chats carry enriched messages"""
        await ChatService.create_chat(db_session, ["alice", "bob"], [MessagePayload(msg="hi", msg_from="bob")])

        result = await ChatService.get_chats_by_participants(db_session, ["alice"])

        assert result.chats[0].messages[0].user.username == "bob"

    async def test_storage_failure_is_reported_not_raised(self, db_session: AsyncSession, alice: User):
        """A failing lookup returns a failed result instead of raising"""
        with patch.object(UserDirectory, 'lookup_many', new=AsyncMock(side_effect=SQLAlchemyError("connection lost"))):
            result = await ChatService.get_chats_by_participants(db_session, ["alice"])

        assert result.ok is False
        assert result.chats == []
        assert "connection lost" in result.error

    async def test_unexpected_failure_is_reported_not_raised(self, db_session: AsyncSession, alice: User):
        """Errors outside the database layer also end up in a failed result"""
        with patch.object(UserDirectory, 'lookup_many', new=AsyncMock(side_effect=RuntimeError("engine not connected"))):
            result = await ChatService.get_chats_by_participants(db_session, ["alice"])

        assert result.ok is False
        assert result.chats == []
        assert "engine not connected" in result.error


@pytest.mark.unit
class TestAddParticipantToChat:
    """Test cases for add_participant_to_chat method"""

    async def test_add_participant_success(self, db_session: AsyncSession, alice: User, bob: User, carol: User):
        """New participant is appended after the existing ones"""
        chat = await ChatService.create_chat(db_session, ["alice", "bob"], [])

        updated = await ChatService.add_participant_to_chat(db_session, chat.id, carol.id_user)

        assert updated.participants == [alice.id_user, bob.id_user, carol.id_user]

    async def test_add_existing_participant_is_idempotent(self, db_session: AsyncSession, alice: User, bob: User):
        """Re-adding a participant does not duplicate it"""
        chat = await ChatService.create_chat(db_session, ["alice", "bob"], [])

        await ChatService.add_participant_to_chat(db_session, chat.id, bob.id_user)
        updated = await ChatService.add_participant_to_chat(db_session, chat.id, bob.id_user)

        assert updated.participants == [alice.id_user, bob.id_user]

    async def test_add_participant_unknown_user(self, db_session: AsyncSession, alice: User, bob: User):
        """Unknown user id is rejected and participants are unchanged"""
        # Rollback on failure expires ORM instances, read ids up front
        expected_participants = [alice.id_user, bob.id_user]
        chat = await ChatService.create_chat(db_session, ["alice", "bob"], [])

        with pytest.raises(UnknownUserException) as exc_info:
            await ChatService.add_participant_to_chat(db_session, chat.id, 99999)

        assert exc_info.value.message == "No user found with ID: 99999"
        unchanged = await ChatService.get_chat(db_session, chat.id)
        assert unchanged.participants == expected_participants

    async def test_add_participant_unknown_chat(self, db_session: AsyncSession, carol: User):
        """Unknown chat id raises ChatNotFoundException"""
        with pytest.raises(ChatNotFoundException):
            await ChatService.add_participant_to_chat(db_session, 99999, carol.id_user)
