"""
Tests for the ConversationOrchestrator.
"""

from unittest.mock import AsyncMock, patch
from uuid import uuid4

import pytest

from medibot.clients.base import ProviderHTTPError
from medibot.core.models import ProviderRole
from medibot.database.base import StoreError
from medibot.orchestration.orchestrator import (
    ConversationOrchestrator,
    get_conversation_orchestrator,
    reset_conversation_orchestrator,
)
from medibot.orchestration.types import ConversationResult
from medibot.utils.validation import ValidationError

REPLY = "Could you describe the chest pain?"


class TestConverse:
    """Test a full chat turn against the store and AI doubles."""

    @pytest.mark.asyncio
    async def test_new_conversation(self, orchestrator, fake_store, user, mock_ai_client):
        """Test that an absent conversation id starts a conversation."""
        result = await orchestrator.converse(
            user_id=str(user.id), conversation_id="", sender="user", content="My chest hurts"
        )

        assert isinstance(result, ConversationResult)
        assert result.ai_response == REPLY
        assert result.created_conversation is True
        assert result.conversation_id in fake_store.conversations
        assert fake_store.conversations[result.conversation_id].user_id == user.id

        messages = [m for m in fake_store.messages if m.con_id == result.conversation_id]
        assert [(m.sender, m.content) for m in messages] == [
            ("user", "My chest hurts"),
            ("assistant", REPLY),
        ]
        mock_ai_client.complete.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_none_conversation_id(self, orchestrator, fake_store, user):
        result = await orchestrator.converse(user.id, None, "user", "Hello")

        assert result.created_conversation is True
        assert fake_store.call_count("get_conversation") == 0
        assert fake_store.call_count("create_conversation") == 1

    @pytest.mark.asyncio
    async def test_existing_conversation(self, orchestrator, fake_store, user, mock_ai_client):
        """Test that a turn appends to the caller's existing conversation."""
        first = await orchestrator.converse(user.id, None, "user", "I have palpitations")
        mock_ai_client.complete.return_value = "How long do they last?"

        second = await orchestrator.converse(
            user.id, str(first.conversation_id), "user", "A few seconds"
        )

        assert second.conversation_id == first.conversation_id
        assert second.created_conversation is False
        assert len(fake_store.conversations) == 1
        assert [m.content for m in fake_store.messages] == [
            "I have palpitations",
            REPLY,
            "A few seconds",
            "How long do they last?",
        ]

    @pytest.mark.asyncio
    async def test_transcript_is_instruction_plus_history(
        self, orchestrator, user, mock_ai_client
    ):
        """Test the provider sees the instruction followed by all N stored messages."""
        first = await orchestrator.converse(user.id, None, "user", "I feel faint")
        await orchestrator.converse(user.id, first.conversation_id, "user", "Yes, twice")

        transcript = mock_ai_client.complete.await_args.args[0]

        assert len(transcript) == 4
        assert transcript[0].role == ProviderRole.USER
        assert transcript[0].text == "You are a cardiologist."
        assert [(e.role, e.text) for e in transcript[1:]] == [
            (ProviderRole.USER, "I feel faint"),
            (ProviderRole.MODEL, REPLY),
            (ProviderRole.USER, "Yes, twice"),
        ]

    @pytest.mark.asyncio
    async def test_assistant_sender_maps_to_model_role(
        self, orchestrator, user, mock_ai_client
    ):
        await orchestrator.converse(user.id, None, "assistant", "Welcome back")

        transcript = mock_ai_client.complete.await_args.args[0]
        assert transcript[1].role == ProviderRole.MODEL

    @pytest.mark.asyncio
    async def test_unknown_conversation_creates_new(self, orchestrator, fake_store, user):
        """Test that an id matching no conversation starts a fresh one."""
        missing = uuid4()
        result = await orchestrator.converse(user.id, str(missing), "user", "Hello")

        assert result.conversation_id != missing
        assert result.created_conversation is True
        assert fake_store.call_count("create_conversation") == 1

    @pytest.mark.asyncio
    async def test_foreign_conversation_creates_new(self, orchestrator, fake_store, user):
        """Test that another user's conversation is never written to."""
        stranger = fake_store.add_user("stranger@example.com")
        theirs = await orchestrator.converse(stranger.id, None, "user", "Private")

        result = await orchestrator.converse(
            user.id, theirs.conversation_id, "user", "Intrusion"
        )

        assert result.conversation_id != theirs.conversation_id
        assert fake_store.conversations[result.conversation_id].user_id == user.id
        their_messages = [
            m.content for m in fake_store.messages if m.con_id == theirs.conversation_id
        ]
        assert their_messages == ["Private", REPLY]

    @pytest.mark.asyncio
    async def test_provider_failure_keeps_user_message(
        self, orchestrator, fake_store, user, mock_ai_client
    ):
        """Test that a provider error leaves the user message without a reply."""
        mock_ai_client.complete.side_effect = ProviderHTTPError(
            "AI API returned non-OK status 503: overloaded",
            provider="gemini",
            status_code=503,
            body="overloaded",
        )

        with pytest.raises(ProviderHTTPError):
            await orchestrator.converse(user.id, None, "user", "Is this serious?")

        assert len(fake_store.conversations) == 1
        assert [(m.sender, m.content) for m in fake_store.messages] == [
            ("user", "Is this serious?")
        ]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("bad_id", ["", "not-a-uuid", None])
    async def test_malformed_user_id(self, orchestrator, fake_store, mock_ai_client, bad_id):
        """Test that a bad user id fails before any store or AI call."""
        with pytest.raises(ValidationError):
            await orchestrator.converse(bad_id, None, "user", "Hello")

        assert fake_store.calls == []
        mock_ai_client.complete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_malformed_conversation_id(self, orchestrator, fake_store, user):
        with pytest.raises(ValidationError, match="Invalid conversation ID"):
            await orchestrator.converse(user.id, "garbage", "user", "Hello")

        assert fake_store.calls == []

    @pytest.mark.asyncio
    async def test_lookup_failure_is_not_treated_as_missing(
        self, orchestrator, fake_store, user, mock_ai_client
    ):
        """Test that a storage failure during lookup does not create a conversation."""
        fake_store.fail_on["get_conversation"] = StoreError("database is locked")

        with pytest.raises(StoreError):
            await orchestrator.converse(user.id, uuid4(), "user", "Hello")

        assert fake_store.call_count("create_conversation") == 0
        mock_ai_client.complete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_message_write_failure(
        self, orchestrator, fake_store, user, mock_ai_client
    ):
        fake_store.fail_on["create_message"] = StoreError("disk full")

        with pytest.raises(StoreError):
            await orchestrator.converse(user.id, None, "user", "Hello")

        # Conversation row stays behind
        assert len(fake_store.conversations) == 1
        mock_ai_client.complete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_invalid_sender_surfaces_store_error(self, orchestrator, fake_store, user):
        with pytest.raises(StoreError):
            await orchestrator.converse(user.id, None, "doctor", "Hello")

        assert fake_store.messages == []

    @pytest.mark.asyncio
    async def test_fallback_reply_is_persisted(
        self, orchestrator, fake_store, user, mock_ai_client
    ):
        mock_ai_client.complete.return_value = "AI did not provide a valid response."

        result = await orchestrator.converse(user.id, None, "user", "Hello")

        assert result.ai_response == "AI did not provide a valid response."
        assert fake_store.messages[-1].sender == "assistant"
        assert fake_store.messages[-1].content == "AI did not provide a valid response."


class TestQueries:
    @pytest.mark.asyncio
    async def test_get_messages(self, orchestrator, user):
        result = await orchestrator.converse(user.id, None, "user", "Hi")

        messages = await orchestrator.get_messages(str(result.conversation_id))
        assert [m.sender for m in messages] == ["user", "assistant"]

    @pytest.mark.asyncio
    async def test_get_messages_unknown_conversation(self, orchestrator):
        assert await orchestrator.get_messages(uuid4()) == []

    @pytest.mark.asyncio
    async def test_get_messages_requires_id(self, orchestrator):
        with pytest.raises(ValidationError, match="conversation ID is required"):
            await orchestrator.get_messages("")

    @pytest.mark.asyncio
    async def test_list_conversations(self, orchestrator, fake_store, user):
        first = await orchestrator.converse(user.id, None, "user", "Swollen ankles")
        await fake_store.create_conversation(user.id)

        conversations = await orchestrator.list_conversations(str(user.id))

        assert len(conversations) == 2
        by_id = {c.id: c for c in conversations}
        listed = by_id[str(first.conversation_id)]
        assert listed.title == "Swollen ankles"
        assert [(m.sender, m.text) for m in listed.messages] == [
            ("user", "Swollen ankles"),
            ("assistant", REPLY),
        ]

    @pytest.mark.asyncio
    async def test_list_conversations_invalid_user(self, orchestrator, fake_store):
        with pytest.raises(ValidationError):
            await orchestrator.list_conversations("nope")
        assert fake_store.calls == []


class TestConstruction:
    def test_explicit_dependencies(self, fake_store, mock_ai_client):
        orchestrator = ConversationOrchestrator(store=fake_store, ai_client=mock_ai_client)

        assert orchestrator.store is fake_store
        assert orchestrator.ai_client is mock_ai_client
        assert "cardiologist AI expert" in orchestrator.instruction_text

    def test_missing_api_key(self, fake_store):
        with pytest.raises(ValueError, match="Gemini API key is required"):
            ConversationOrchestrator(store=fake_store)

    def test_global_orchestrator_singleton(self, fake_store, mock_ai_client):
        with (
            patch(
                "medibot.orchestration.orchestrator.get_conversation_store",
                return_value=fake_store,
            ),
            patch(
                "medibot.orchestration.orchestrator.create_client",
                return_value=mock_ai_client,
            ),
        ):
            first = get_conversation_orchestrator()
            assert get_conversation_orchestrator() is first

            reset_conversation_orchestrator()
            assert get_conversation_orchestrator() is not first

    def test_uses_injected_client(self, fake_store):
        client = AsyncMock()
        orchestrator = ConversationOrchestrator(
            store=fake_store, ai_client=client, instruction_text=""
        )
        assert orchestrator.instruction_text == ""
