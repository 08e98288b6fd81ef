# app/models/user.py

from sqlalchemy import Column, Integer, String, DateTime
from datetime import datetime, UTC
from infrastructure.postgres_connection import Base


class User(Base):
    """User directory entry; chats reference users by id, messages by username"""
    __tablename__ = "users"

    id_user = Column(Integer, primary_key=True, index=True, autoincrement=True)
    username = Column(String(255), nullable=False, unique=True, index=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False)

    def __repr__(self):
        return f"<User(id_user={self.id_user}, username='{self.username}')>"
