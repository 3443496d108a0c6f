"""Utterance tokenization.

Utterances are split on whitespace. Surrounding punctuation is stripped from
each word, and the case-folded form is used for comparison while the typed
form is kept for rendering slot values.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

# Characters removed from either end of a word ("lights." -> "lights")
_EDGE_PUNCTUATION = ".,!?;:\"'`()[]{}“”‘’"

_WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True)
class Token:
    """A single word of an utterance.

    Attributes:
        text: The word as typed, with surrounding punctuation removed
        word: Case-folded form used for matching
    """

    text: str
    word: str


def normalize_word(word: str) -> str:
    """Case-fold a word for comparison."""
    return word.casefold()


def tokenize(utterance: str) -> list[Token]:
    """Split an utterance into tokens.

    Args:
        utterance: Raw utterance text

    Returns:
        List of tokens in utterance order (empty for blank input)
    """
    if not isinstance(utterance, str):
        raise TypeError(f"Bad input: {utterance!r}")
    tokens: list[Token] = []
    for raw in _WHITESPACE.split(utterance.strip()):
        text = raw.strip(_EDGE_PUNCTUATION)
        if text:
            tokens.append(Token(text=text, word=normalize_word(text)))
    return tokens


def render_tokens(tokens: list[Token] | tuple[Token, ...]) -> str:
    """Join tokens back into text as originally typed."""
    return " ".join(token.text for token in tokens)
