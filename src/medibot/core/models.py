"""
Core Pydantic models for Medibot.

This module contains the data models shared by the store, the AI client,
the orchestrator and the HTTP layer.
"""

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Sender(str, Enum):
    """Who wrote a stored message."""

    USER = "user"
    ASSISTANT = "assistant"


class ProviderRole(str, Enum):
    """Role vocabulary accepted by the Gemini contents API."""

    USER = "user"
    MODEL = "model"


class User(BaseModel):
    """A registered user."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: str
    username: str
    role: str = "patient"
    created_at: datetime | None = None


class CreateUserParams(BaseModel):
    """Fields needed to register a user."""

    email: str = Field(..., description="Unique e-mail address")
    username: str = Field(default="", description="Display name")
    role: str = Field(default="patient", description="Display role")

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v):
        return v.strip().lower()


class Conversation(BaseModel):
    """A conversation owned by one user."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    created_at: datetime | None = None


class Message(BaseModel):
    """A single stored message. Insertion order is conversation order."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    con_id: UUID
    sender: str
    content: str
    created_at: datetime | None = None


class Summary(BaseModel):
    """A conversation summary record."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    con_id: UUID
    content: str
    created_at: datetime | None = None


class ConversationRow(BaseModel):
    """
    One row of the bulk conversation listing.

    Produced by a left outer join, so conversations without messages appear
    once with ``message_id`` set to None.
    """

    conversation_id: UUID
    conversation_created_at: datetime | None = None
    message_id: UUID | None = None
    message_sender: str = ""
    message_content: str = ""
    message_created_at: datetime | None = None


class Part(BaseModel):
    """A text segment of a transcript entry."""

    text: str


class TranscriptEntry(BaseModel):
    """A role-tagged entry in the transcript sent to the provider."""

    role: ProviderRole
    parts: list[Part]

    @classmethod
    def from_text(cls, role: ProviderRole, text: str) -> "TranscriptEntry":
        return cls(role=role, parts=[Part(text=text)])

    @property
    def text(self) -> str:
        return "".join(part.text for part in self.parts)


class FrontendMessage(BaseModel):
    """A message as the chat frontend displays it."""

    sender: str
    text: str


class FrontendConversation(BaseModel):
    """A conversation with its messages, as the chat frontend lists it."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    title: str
    messages: list[FrontendMessage] = Field(default_factory=list)
    created_at: datetime | None = Field(default=None, alias="createdAt")
