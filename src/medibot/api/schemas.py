"""
Request and response bodies of the HTTP API.

Field names on the wire are camelCase, matching the mobile frontend.
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from ..core.models import Message, User


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class CreateUserRequest(CamelModel):
    email: str
    username: str = ""
    role: str = "patient"


class CreateUserResponse(CamelModel):
    success: bool = True
    message: str = "user created successfully"
    user_id: UUID = Field(alias="userId")


class UserResponse(CamelModel):
    id: UUID
    email: str
    username: str
    role: str
    created_at: datetime | None = Field(default=None, alias="createdAt")

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            email=user.email,
            username=user.username,
            role=user.role,
            created_at=user.created_at,
        )


class ChatRequest(CamelModel):
    user_id: str = Field(default="", alias="userId")
    content: str = ""
    sender: str = "user"
    con_id: str | None = Field(default=None, alias="conId")


class ChatResponse(CamelModel):
    conversation_id: UUID = Field(alias="conversationId")
    ai_response: str = Field(alias="aiResponse")
    message: str = "Message processed successfully"


class MessageResponse(CamelModel):
    id: UUID
    con_id: UUID = Field(alias="conId")
    sender: str
    content: str
    created_at: datetime | None = Field(default=None, alias="createdAt")

    @classmethod
    def from_message(cls, message: Message) -> "MessageResponse":
        return cls(
            id=message.id,
            con_id=message.con_id,
            sender=message.sender,
            content=message.content,
            created_at=message.created_at,
        )
