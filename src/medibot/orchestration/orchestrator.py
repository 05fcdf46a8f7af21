"""
ConversationOrchestrator for chat turns.

This module provides the ConversationOrchestrator class that resolves the
conversation a message belongs to, persists the message, asks the AI
provider for a reply and persists that reply.
"""

import logging
import threading
from typing import cast
from uuid import UUID

from ..clients import create_client
from ..clients.base import BaseAIClient
from ..config.settings import get_settings
from ..core.models import FrontendConversation, Message, Sender
from ..database.base import BaseStore, NotFoundError
from ..database.store import get_conversation_store
from ..utils.validation import parse_identifier, parse_optional_identifier
from .listing import group_conversation_rows
from .transcript import build_transcript
from .types import ConversationResult

logger = logging.getLogger(__name__)

# Global orchestrator instance and lock for thread-safe singleton
_global_orchestrator: "ConversationOrchestrator | None" = None
_orchestrator_lock = threading.Lock()


class ConversationOrchestrator:
    """
    Runs a chat turn across the store and the AI client.

    Every step is a sequential call to a collaborator. Nothing is retried and
    partial state (an empty conversation, a user message without a reply) is
    left in place when a later step fails.
    """

    def __init__(
        self,
        store: BaseStore | None = None,
        ai_client: BaseAIClient | None = None,
        instruction_text: str | None = None,
    ):
        """
        Initialize conversation orchestrator.

        Args:
            store: Store instance. If None, uses the global store.
            ai_client: AI client instance. If None, builds one from settings.
            instruction_text: Persona instruction prepended to every
                transcript. If None, read from settings.
        """
        settings = get_settings()
        self.store = store or get_conversation_store()
        self.ai_client = ai_client or create_client(settings)
        self.instruction_text = (
            instruction_text
            if instruction_text is not None
            else settings.gemini.generation.instruction_text
        )

        logger.debug("ConversationOrchestrator initialized")

    async def converse(
        self,
        user_id: str | UUID,
        conversation_id: str | UUID | None,
        sender: str,
        content: str,
    ) -> ConversationResult:
        """
        Handle one chat turn.

        Args:
            user_id: Requesting user's id
            conversation_id: Existing conversation id, or empty to start a new one
            sender: Role stored with the caller's message (normally "user")
            content: Message text

        Returns:
            ConversationResult with the conversation id and the assistant reply

        Raises:
            ValidationError: Malformed user or conversation id
            StoreError: Persistence failure
            ProviderError: The AI provider failed
        """
        user_uuid = parse_identifier(user_id, "user ID")
        con_uuid = parse_optional_identifier(conversation_id, "conversation ID")

        con_uuid, created = await self._resolve_conversation(user_uuid, con_uuid)

        await self.store.create_message(con_uuid, sender, content)

        history = await self.store.get_con_messages(con_uuid)
        transcript = build_transcript(self.instruction_text, history)

        logger.info(
            f"Requesting AI reply for conversation {con_uuid} "
            f"({len(history)} messages)"
        )
        ai_response = await self.ai_client.complete(transcript)

        await self.store.create_message(con_uuid, Sender.ASSISTANT.value, ai_response)

        return ConversationResult(
            conversation_id=con_uuid,
            ai_response=ai_response,
            created_conversation=created,
        )

    async def _resolve_conversation(
        self, user_id: UUID, conversation_id: UUID | None
    ) -> tuple[UUID, bool]:
        """Return the conversation to write to and whether it was just created."""
        if conversation_id is not None:
            try:
                await self.store.get_conversation(conversation_id, user_id)
                return conversation_id, False
            except NotFoundError:
                logger.info(
                    f"Conversation {conversation_id} not found for user {user_id}, "
                    "starting a new one"
                )

        new_id = await self.store.create_conversation(user_id)
        logger.info(f"Created conversation {new_id} for user {user_id}")
        return new_id, True

    async def get_messages(self, conversation_id: str | UUID) -> list[Message]:
        """Fetch a conversation's messages in order."""
        con_uuid = parse_identifier(conversation_id, "conversation ID")
        return await self.store.get_con_messages(con_uuid)

    async def list_conversations(
        self, user_id: str | UUID
    ) -> list[FrontendConversation]:
        """List a user's conversations with their messages, newest first."""
        user_uuid = parse_identifier(user_id, "user ID")
        rows = await self.store.list_full_conversations_by_user_id(user_uuid)
        return group_conversation_rows(rows)


def get_conversation_orchestrator() -> ConversationOrchestrator:
    """
    Get the global ConversationOrchestrator instance.

    Built on first use from the global store and settings.

    Returns:
        Global ConversationOrchestrator instance
    """
    global _global_orchestrator
    if _global_orchestrator is None:
        with _orchestrator_lock:
            # Another thread may have built it while we waited
            if _global_orchestrator is None:
                _global_orchestrator = ConversationOrchestrator()
                logger.debug("Created global ConversationOrchestrator instance")
    return cast(ConversationOrchestrator, _global_orchestrator)


def reset_conversation_orchestrator() -> None:
    """
    Reset the global orchestrator instance.

    This is primarily used for testing to ensure clean state
    between test runs.
    """
    global _global_orchestrator
    with _orchestrator_lock:
        _global_orchestrator = None
        logger.debug("Reset global ConversationOrchestrator instance")
