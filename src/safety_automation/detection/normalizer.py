"""Text canonicalization applied before pattern matching."""
from __future__ import annotations
import re

_NON_WORD = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")


def normalize_text(text: str) -> str:
    """Lowercase, turn punctuation into spaces, collapse whitespace and trim.

    "I WANT to... kill  myself!!!" -> "i want to kill myself"
    """
    lowered = text.lower()
    spaced = _NON_WORD.sub(" ", lowered)
    return _WHITESPACE.sub(" ", spaced).strip()
