"""
Transcript assembly for provider requests.
"""

from collections.abc import Iterable

from ..core.models import Message, ProviderRole, Sender, TranscriptEntry


def map_role(sender: str) -> ProviderRole:
    """Map a stored sender to the provider's role vocabulary."""
    if sender == Sender.ASSISTANT.value:
        return ProviderRole.MODEL
    return ProviderRole.USER


def build_transcript(
    instruction_text: str, messages: Iterable[Message]
) -> list[TranscriptEntry]:
    """
    Build the transcript sent to the provider.

    The persona instruction goes first as a user-role entry (the contents API
    only knows ``user`` and ``model``), followed by one entry per stored
    message in the order given.
    """
    transcript = [TranscriptEntry.from_text(ProviderRole.USER, instruction_text)]
    transcript.extend(
        TranscriptEntry.from_text(map_role(message.sender), message.content)
        for message in messages
    )
    return transcript
