"""Render the realtime agent's system instructions for one call."""

from __future__ import annotations

from agents.schemas import CallContext
from prompts.loader import load_prompt, render_prompt

MISSING_VALUE = "not provided"


def context_fields(context: CallContext) -> dict[str, str]:
    return {
        name: (value if value else MISSING_VALUE)
        for name, value in context.model_dump().items()
    }


def build_instructions(context: CallContext | None) -> str:
    """Return the instructions text; ``None`` yields the degraded variant.

    The degraded variant asks the other party to supply identifying details
    verbally instead of reading them from stored context.
    """

    if context is None:
        intro = load_prompt("verification_fallback.txt")
    else:
        intro = render_prompt("verification_intro.txt", context_fields(context))

    return intro + "\n" + load_prompt("verification_questions.txt")
