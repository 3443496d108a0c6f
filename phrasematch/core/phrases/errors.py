"""Exceptions raised by the phrase compiler and match engine.

Compile-time problems (bad brackets, unknown entity types, malformed
parameter blocks) raise a ParseError carrying the offending character
position. A template that simply does not match an utterance is not an
error; only search budget exhaustion is raised at match time.
"""

from __future__ import annotations

from enum import Enum


class ParseErrorKind(str, Enum):
    """Categories of template and source parse failures."""

    UNBALANCED = "unbalanced"  # Closing bracket with no (or the wrong) opener
    UNTERMINATED = "unterminated"  # Opening bracket never closed
    NESTED = "nested"  # Bracket construct not allowed at this depth
    EMPTY_SLOT = "empty_slot"
    NO_PARAMETERS = "no_parameters"
    UNEXPECTED_TEXT = "unexpected_text"
    UNKNOWN_ENTITY = "unknown_entity"


class PhraseMatchError(Exception):
    """Base exception for phrasematch errors."""

    pass


class ParseError(PhraseMatchError):
    """A template or template source could not be parsed.

    Attributes:
        message: Human-readable description
        position: Index of the offending character in the input string
        kind: Category of the failure
    """

    def __init__(self, message: str, position: int, kind: ParseErrorKind) -> None:
        super().__init__(f"{message} (at position {position})")
        self.message = message
        self.position = position
        self.kind = kind


class UnknownEntityError(ParseError):
    """A typed slot referenced an entity type missing from the entity table."""

    def __init__(self, entity_type: str, position: int) -> None:
        super().__init__(
            f"No entity type by the name {entity_type!r}",
            position,
            ParseErrorKind.UNKNOWN_ENTITY,
        )
        self.entity_type = entity_type


class SearchBudgetExceeded(PhraseMatchError):
    """Matching a phrase took more search steps than its budget allows."""

    def __init__(self, steps: int, max_steps: int, source: str | None = None) -> None:
        detail = f" while matching {source!r}" if source else ""
        super().__init__(f"Search budget of {max_steps} steps exceeded{detail}")
        self.steps = steps
        self.max_steps = max_steps
        self.source = source
