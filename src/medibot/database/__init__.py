"""
Database module for user, conversation and message storage.
"""

from .base import BaseStore, DuplicateUserError, NotFoundError, StoreError
from .encryption import EncryptionManager
from .models import Base, Conversation, Message, Summary, User
from .store import ConversationStore, get_conversation_store

__all__ = [
    "Base",
    "BaseStore",
    "Conversation",
    "ConversationStore",
    "DuplicateUserError",
    "EncryptionManager",
    "Message",
    "NotFoundError",
    "StoreError",
    "Summary",
    "User",
    "get_conversation_store",
]
