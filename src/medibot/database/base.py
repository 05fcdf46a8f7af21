"""
Abstract store interface.

The orchestrator and the HTTP layer only depend on this capability
interface, so any storage engine can back them.
"""

from abc import ABC, abstractmethod
from typing import Any
from uuid import UUID

from ..core.models import (
    Conversation,
    ConversationRow,
    CreateUserParams,
    Message,
    Summary,
    User,
)


class StoreError(Exception):
    """Persistence failure."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class NotFoundError(StoreError):
    """Requested row does not exist (or is not visible to the caller)."""

    pass


class DuplicateUserError(StoreError):
    """A user with the same e-mail address already exists."""

    pass


class BaseStore(ABC):
    """Persistence operations for users, conversations and messages."""

    @abstractmethod
    async def create_user(self, params: CreateUserParams) -> User:
        """
        Register a user.

        Raises:
            DuplicateUserError: E-mail already registered
            StoreError: Any other persistence failure
        """
        pass

    @abstractmethod
    async def get_user(self, user_id: UUID) -> User:
        """Fetch a user by id. Raises NotFoundError when absent."""
        pass

    @abstractmethod
    async def get_user_by_email(self, email: str) -> User:
        """Fetch a user by e-mail. Raises NotFoundError when absent."""
        pass

    @abstractmethod
    async def create_conversation(self, user_id: UUID) -> UUID:
        """Create an empty conversation owned by user_id and return its id."""
        pass

    @abstractmethod
    async def get_conversation(self, conversation_id: UUID, user_id: UUID) -> Conversation:
        """
        Fetch a conversation scoped to its owner.

        Raises:
            NotFoundError: No conversation with this id belongs to user_id
            StoreError: Any other persistence failure
        """
        pass

    @abstractmethod
    async def delete_conversation(self, conversation_id: UUID) -> None:
        """Delete a conversation with its messages and summaries."""
        pass

    @abstractmethod
    async def create_message(self, con_id: UUID, sender: str, content: str) -> Message:
        """Append a message to a conversation."""
        pass

    @abstractmethod
    async def get_con_messages(self, con_id: UUID) -> list[Message]:
        """Fetch every message of a conversation in insertion order."""
        pass

    @abstractmethod
    async def list_full_conversations_by_user_id(
        self, user_id: UUID
    ) -> list[ConversationRow]:
        """
        Fetch all conversations of a user joined with their messages.

        Rows are ordered newest conversation first, then by message order.
        Conversations without messages yield one row with message_id None.
        """
        pass

    @abstractmethod
    async def create_summary(self, con_id: UUID, content: str) -> Summary:
        """Store a summary for a conversation."""
        pass

    @abstractmethod
    async def get_summary(self, summary_id: UUID) -> Summary:
        """Fetch a summary by id. Raises NotFoundError when absent."""
        pass

    async def close(self) -> None:
        """Release connections held by the store."""
        pass
