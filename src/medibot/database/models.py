"""
SQLAlchemy models for Medibot storage.
"""

from datetime import UTC, datetime
from uuid import uuid4

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, declarative_base, relationship

Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(UTC)


class User(Base):
    """Registered user."""

    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid4)
    email = Column(String(254), nullable=False, unique=True)
    username = Column(String, nullable=False, default="")
    role = Column(String, nullable=False, default="patient")
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    conversations: Mapped[list["Conversation"]] = relationship(
        "Conversation", back_populates="user"
    )


class Conversation(Base):
    """Conversation owned by a single user."""

    __tablename__ = "conversations"

    id = Column(Uuid, primary_key=True, default=uuid4)
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    user: Mapped["User"] = relationship("User", back_populates="conversations")
    messages: Mapped[list["Message"]] = relationship(
        "Message", back_populates="conversation", order_by="Message.seq"
    )

    __table_args__ = (
        Index("idx_conversations_user_created", "user_id", "created_at"),
    )
class Message(Base):
    """Append-only conversation message."""

    __tablename__ = "messages"

    # Store-wide insertion counter; ordering by it gives conversation order
    seq = Column(Integer, primary_key=True, autoincrement=True)

    id = Column(Uuid, nullable=False, unique=True, default=uuid4)
    con_id = Column(Uuid, ForeignKey("conversations.id"), nullable=False)

    sender = Column(String, nullable=False)
    content = Column(Text, nullable=False)

    # Set when content holds a Fernet token instead of plain text
    encryption_key_id = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    conversation: Mapped["Conversation"] = relationship(
        "Conversation", back_populates="messages"
    )

    __table_args__ = (
        CheckConstraint("sender IN ('user', 'assistant')", name="ck_messages_sender"),
        Index("idx_messages_con_seq", "con_id", "seq"),
    )


class Summary(Base):
    """Conversation summary."""

    __tablename__ = "summaries"

    id = Column(Uuid, primary_key=True, default=uuid4)
    con_id = Column(Uuid, ForeignKey("conversations.id"), nullable=False)
    content = Column(Text, nullable=False)
    encryption_key_id = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    __table_args__ = (Index("idx_summaries_con", "con_id"),)
