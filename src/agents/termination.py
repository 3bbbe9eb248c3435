from __future__ import annotations

from collections.abc import Iterable

CLOSING_PHRASES: tuple[str, ...] = (
    "goodbye",
    "good bye",
    "take care",
    "have a nice day",
    "have a great day",
)


def find_closing_phrase(transcript: str, phrases: Iterable[str] = CLOSING_PHRASES) -> str | None:
    """Return the first closing phrase contained in ``transcript``, if any."""

    text = " ".join(transcript.lower().split())
    for phrase in phrases:
        if phrase in text:
            return phrase
    return None


def is_conversation_end(transcript: str, phrases: Iterable[str] = CLOSING_PHRASES) -> bool:
    return find_closing_phrase(transcript, phrases) is not None
