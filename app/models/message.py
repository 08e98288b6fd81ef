# app/models/message.py

from sqlalchemy import Column, Integer, String, DateTime, Text
from datetime import datetime, UTC
from infrastructure.postgres_connection import Base


MESSAGE_TYPE_DIRECT = "direct"


class Message(Base):
    """Immutable message record. The sender is kept as a username and resolved at read time."""
    __tablename__ = "messages"

    id_message = Column(Integer, primary_key=True, index=True, autoincrement=True)
    msg = Column(Text, nullable=False)
    msg_from = Column(String(255), nullable=False, index=True)
    msg_date_time = Column(DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False)
    type = Column(String(20), default=MESSAGE_TYPE_DIRECT, nullable=False)

    def __repr__(self):
        return f"<Message(id_message={self.id_message}, msg_from='{self.msg_from}')>"
