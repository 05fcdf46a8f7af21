"""
Shared test fixtures and configuration for Medibot tests.

This file provides global state management, an in-memory store double and
common test utilities to ensure proper test isolation.
"""

import logging
import os
import warnings
from datetime import UTC, datetime
from unittest.mock import AsyncMock
from uuid import UUID, uuid4

import pytest
import pytest_asyncio

from medibot.clients.base import BaseAIClient
from medibot.config.settings import config_manager
from medibot.core.models import (
    Conversation,
    ConversationRow,
    CreateUserParams,
    Message,
    Summary,
    User,
)
from medibot.database.base import (
    BaseStore,
    DuplicateUserError,
    NotFoundError,
    StoreError,
)
from medibot.database.store import ConversationStore, reset_conversation_store
from medibot.orchestration.orchestrator import (
    ConversationOrchestrator,
    reset_conversation_orchestrator,
)

warnings.filterwarnings("ignore", category=DeprecationWarning)

# Configure logging for tests
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("medibot").setLevel(logging.WARNING)


@pytest.fixture(autouse=True, scope="function")
def isolated_environment(tmp_path):
    """
    Isolate environment variables for each test to prevent test pollution.

    This ensures that configuration tests don't inherit environment variables
    from the host system, .env files, or other tests.
    """
    sensitive_prefixes = (
        "LOG_LEVEL",
        "ENVIRONMENT",
        "APP_",
        "GEMINI",
        "DATABASE",
        "SERVER",
        "MEDIBOT_",
    )

    original_env = {
        key: value
        for key, value in os.environ.items()
        if key.upper().startswith(sensitive_prefixes)
    }
    for key in original_env:
        del os.environ[key]

    # Change working directory to temp path to avoid loading .env files
    original_cwd = os.getcwd()
    os.chdir(tmp_path)

    yield

    os.chdir(original_cwd)
    for key in list(os.environ):
        if key.upper().startswith(sensitive_prefixes):
            del os.environ[key]
    os.environ.update(original_env)


@pytest.fixture(autouse=True, scope="function")
def reset_global_state():
    """Reset configuration and singletons before and after each test."""
    config_manager.reset()
    reset_conversation_orchestrator()
    reset_conversation_store()

    yield

    config_manager.reset()
    reset_conversation_orchestrator()
    reset_conversation_store()


class FakeStore(BaseStore):
    """
    In-memory store that records every call.

    ``fail_on`` maps a method name to an exception raised when it is called.
    """

    def __init__(self):
        self.users: dict[UUID, User] = {}
        self.conversations: dict[UUID, Conversation] = {}
        self.messages: list[Message] = []
        self.summaries: dict[UUID, Summary] = {}
        self.calls: list[str] = []
        self.fail_on: dict[str, Exception] = {}

    def _record(self, name: str) -> None:
        self.calls.append(name)
        if name in self.fail_on:
            raise self.fail_on[name]

    def call_count(self, name: str) -> int:
        return self.calls.count(name)

    def add_user(self, email: str = "patient@example.com") -> User:
        user = User(id=uuid4(), email=email, username="patient")
        self.users[user.id] = user
        return user

    async def create_user(self, params: CreateUserParams) -> User:
        self._record("create_user")
        if any(u.email == params.email for u in self.users.values()):
            raise DuplicateUserError("A user with this email already exists")
        user = User(
            id=uuid4(),
            email=params.email,
            username=params.username,
            role=params.role,
            created_at=datetime.now(UTC),
        )
        self.users[user.id] = user
        return user

    async def get_user(self, user_id: UUID) -> User:
        self._record("get_user")
        if user_id not in self.users:
            raise NotFoundError("User not found")
        return self.users[user_id]

    async def get_user_by_email(self, email: str) -> User:
        self._record("get_user_by_email")
        for user in self.users.values():
            if user.email == email.strip().lower():
                return user
        raise NotFoundError("User not found")

    async def create_conversation(self, user_id: UUID) -> UUID:
        self._record("create_conversation")
        conversation = Conversation(
            id=uuid4(), user_id=user_id, created_at=datetime.now(UTC)
        )
        self.conversations[conversation.id] = conversation
        return conversation.id

    async def get_conversation(self, conversation_id: UUID, user_id: UUID) -> Conversation:
        self._record("get_conversation")
        conversation = self.conversations.get(conversation_id)
        if conversation is None or conversation.user_id != user_id:
            raise NotFoundError("Conversation not found")
        return conversation

    async def delete_conversation(self, conversation_id: UUID) -> None:
        self._record("delete_conversation")
        self.conversations.pop(conversation_id, None)
        self.messages = [m for m in self.messages if m.con_id != conversation_id]

    async def create_message(self, con_id: UUID, sender: str, content: str) -> Message:
        self._record("create_message")
        if sender not in ("user", "assistant"):
            raise StoreError("sender violates check constraint")
        message = Message(
            id=uuid4(),
            con_id=con_id,
            sender=sender,
            content=content,
            created_at=datetime.now(UTC),
        )
        self.messages.append(message)
        return message

    async def get_con_messages(self, con_id: UUID) -> list[Message]:
        self._record("get_con_messages")
        return [m for m in self.messages if m.con_id == con_id]

    async def list_full_conversations_by_user_id(
        self, user_id: UUID
    ) -> list[ConversationRow]:
        self._record("list_full_conversations_by_user_id")
        owned = sorted(
            (c for c in self.conversations.values() if c.user_id == user_id),
            key=lambda c: c.created_at,
            reverse=True,
        )
        rows = []
        for conversation in owned:
            messages = [m for m in self.messages if m.con_id == conversation.id]
            if not messages:
                rows.append(
                    ConversationRow(
                        conversation_id=conversation.id,
                        conversation_created_at=conversation.created_at,
                    )
                )
            for m in messages:
                rows.append(
                    ConversationRow(
                        conversation_id=conversation.id,
                        conversation_created_at=conversation.created_at,
                        message_id=m.id,
                        message_sender=m.sender,
                        message_content=m.content,
                        message_created_at=m.created_at,
                    )
                )
        return rows

    async def create_summary(self, con_id: UUID, content: str) -> Summary:
        self._record("create_summary")
        summary = Summary(id=uuid4(), con_id=con_id, content=content)
        self.summaries[summary.id] = summary
        return summary

    async def get_summary(self, summary_id: UUID) -> Summary:
        self._record("get_summary")
        if summary_id not in self.summaries:
            raise NotFoundError("Summary not found")
        return self.summaries[summary_id]


@pytest.fixture
def fake_store():
    """In-memory store double."""
    return FakeStore()


@pytest.fixture
def user(fake_store):
    """A user registered in the fake store."""
    return fake_store.add_user()


@pytest.fixture
def mock_ai_client():
    """AI client double that always replies with the same text."""
    client = AsyncMock(spec=BaseAIClient)
    client.complete.return_value = "Could you describe the chest pain?"
    return client


@pytest.fixture
def orchestrator(fake_store, mock_ai_client):
    """Orchestrator wired to the test doubles."""
    return ConversationOrchestrator(
        store=fake_store,
        ai_client=mock_ai_client,
        instruction_text="You are a cardiologist.",
    )


@pytest_asyncio.fixture
async def sqlite_store(tmp_path):
    """ConversationStore backed by a temporary SQLite file."""
    store = ConversationStore(database_url=f"sqlite:///{tmp_path / 'medibot.db'}")
    yield store
    await store.close()
