"""
Grouping of the bulk conversation listing into per-conversation records.
"""

from collections.abc import Iterable

from ..core.models import ConversationRow, FrontendConversation, FrontendMessage

EMPTY_CONVERSATION_TITLE = "Empty Conversation"


def group_conversation_rows(
    rows: Iterable[ConversationRow],
) -> list[FrontendConversation]:
    """
    Fold joined conversation/message rows into conversations.

    Conversations keep the order in which they first appear in ``rows`` and
    messages keep their row order. Rows with a missing or nil message id stand for
    conversations that have no messages yet and contribute no message.
    The title is the first message's text.
    """
    conversations: dict[str, FrontendConversation] = {}

    for row in rows:
        con_id = str(row.conversation_id)
        conversation = conversations.get(con_id)
        if conversation is None:
            conversation = FrontendConversation(
                id=con_id,
                title=EMPTY_CONVERSATION_TITLE,
                created_at=row.conversation_created_at,
            )
            conversations[con_id] = conversation

        if row.message_id is None or row.message_id.int == 0:
            continue

        conversation.messages.append(
            FrontendMessage(
                sender=row.message_sender or "user",
                text=row.message_content,
            )
        )

    for conversation in conversations.values():
        if conversation.messages:
            conversation.title = conversation.messages[0].text

    return list(conversations.values())
