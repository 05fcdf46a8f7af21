"""
Type definitions for conversation orchestration.
"""

from dataclasses import dataclass
from uuid import UUID


@dataclass
class ConversationResult:
    """
    Result of a single conversation turn.

    Carries the conversation the turn was written to and the reply the
    assistant produced.
    """

    conversation_id: UUID
    """Conversation the messages were appended to (possibly newly created)"""

    ai_response: str
    """Assistant reply text, as persisted"""

    created_conversation: bool = False
    """Whether this turn started a new conversation"""
