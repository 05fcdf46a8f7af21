"""
Conversation orchestration module.

This module provides the ConversationOrchestrator class and the transcript
and listing helpers it is built from.
"""

from .listing import group_conversation_rows
from .orchestrator import (
    ConversationOrchestrator,
    get_conversation_orchestrator,
    reset_conversation_orchestrator,
)
from .transcript import build_transcript, map_role
from .types import ConversationResult

__all__ = [
    "ConversationOrchestrator",
    "ConversationResult",
    "build_transcript",
    "get_conversation_orchestrator",
    "group_conversation_rows",
    "map_role",
    "reset_conversation_orchestrator",
]
