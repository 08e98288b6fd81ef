"""create_chat_tables

Revision ID: 3f2a9c1d7e54
Revises:
Create Date: 2026-10-19 10:12:41.518302

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f2a9c1d7e54'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id_user', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('username', sa.String(length=255), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id_user')
    )
    op.create_index(op.f('ix_users_id_user'), 'users', ['id_user'], unique=False)
    op.create_index(op.f('ix_users_username'), 'users', ['username'], unique=True)

    op.create_table(
        'messages',
        sa.Column('id_message', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('msg', sa.Text(), nullable=False),
        sa.Column('msg_from', sa.String(length=255), nullable=False),
        sa.Column('msg_date_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('type', sa.String(length=20), nullable=False),
        sa.PrimaryKeyConstraint('id_message')
    )
    op.create_index(op.f('ix_messages_id_message'), 'messages', ['id_message'], unique=False)
    op.create_index(op.f('ix_messages_msg_from'), 'messages', ['msg_from'], unique=False)

    op.create_table(
        'chats',
        sa.Column('id_chat', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id_chat')
    )
    op.create_index(op.f('ix_chats_id_chat'), 'chats', ['id_chat'], unique=False)

    op.create_table(
        'chat_participants',
        sa.Column('id_chat_participant', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('chat_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['chat_id'], ['chats.id_chat']),
        sa.ForeignKeyConstraint(['user_id'], ['users.id_user']),
        sa.PrimaryKeyConstraint('id_chat_participant'),
        sa.UniqueConstraint('chat_id', 'user_id', name='uq_chat_participants_chat_user')
    )
    op.create_index(op.f('ix_chat_participants_chat_id'), 'chat_participants', ['chat_id'], unique=False)
    op.create_index(op.f('ix_chat_participants_user_id'), 'chat_participants', ['user_id'], unique=False)

    # Link id is the ordering key of a chat's messages
    op.create_table(
        'chat_message_links',
        sa.Column('id_chat_message_link', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('chat_id', sa.Integer(), nullable=False),
        sa.Column('message_id', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['chat_id'], ['chats.id_chat']),
        sa.ForeignKeyConstraint(['message_id'], ['messages.id_message']),
        sa.PrimaryKeyConstraint('id_chat_message_link'),
        sa.UniqueConstraint('message_id')
    )
    op.create_index(op.f('ix_chat_message_links_chat_id'), 'chat_message_links', ['chat_id'], unique=False)


def downgrade() -> None:
    op.drop_index(op.f('ix_chat_message_links_chat_id'), table_name='chat_message_links')
    op.drop_table('chat_message_links')
    op.drop_index(op.f('ix_chat_participants_user_id'), table_name='chat_participants')
    op.drop_index(op.f('ix_chat_participants_chat_id'), table_name='chat_participants')
    op.drop_table('chat_participants')
    op.drop_index(op.f('ix_chats_id_chat'), table_name='chats')
    op.drop_table('chats')
    op.drop_index(op.f('ix_messages_msg_from'), table_name='messages')
    op.drop_index(op.f('ix_messages_id_message'), table_name='messages')
    op.drop_table('messages')
    op.drop_index(op.f('ix_users_username'), table_name='users')
    op.drop_index(op.f('ix_users_id_user'), table_name='users')
    op.drop_table('users')
