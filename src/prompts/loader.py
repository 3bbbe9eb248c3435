from __future__ import annotations

from collections.abc import Mapping
from functools import lru_cache
from pathlib import Path

PROMPT_DIR = Path(__file__).resolve().parent


@lru_cache(maxsize=None)
def load_prompt(filename: str) -> str:
    """Load a prompt template shipped with the codebase, newline-terminated."""

    path = PROMPT_DIR / filename
    if not path.is_file():
        raise RuntimeError(f"Prompt file not found: {filename}")
    return path.read_text(encoding="utf-8").strip() + "\n"


def render_prompt(filename: str, values: Mapping[str, str]) -> str:
    # Values are inserted verbatim; braces inside them are not re-parsed.
    return load_prompt(filename).format_map(values)
