"""Phrase template compilation and matching.

Templates are compiled once into immutable matcher trees, then matched
against whole utterances. A PhraseSet picks the most specific match across
many templates.

Example usage:
    ```python
    from phrasematch.core.phrases import PhraseSet, compile_phrase, convert_entities

    entities = convert_entities({"number": ["one", "two", "three"]})
    phrases = PhraseSet([
        compile_phrase("turn on the lights", intent_name="lights.on"),
        compile_phrase("turn on the [device]", intent_name="device.on"),
        compile_phrase("go to tab [n:number]", entities=entities, intent_name="tab.go"),
    ])

    match = phrases.match("go to tab two")
    assert match.intent_name == "tab.go"
    assert match.slots == {"n": "two"}
    ```
"""

from .compiler import (
    EntityTable,
    compile_phrase,
    convert_entities,
    split_phrase_lines,
)
from .engine import (
    Match,
    SearchBudget,
    try_match,
)
from .errors import (
    ParseError,
    ParseErrorKind,
    PhraseMatchError,
    SearchBudgetExceeded,
    UnknownEntityError,
)
from .nodes import (
    Alternatives,
    FullPhrase,
    MatcherNode,
    Sequence,
    Slot,
    Wildcard,
    Word,
)
from .phrase_set import PhraseSet
from .tokens import Token, tokenize

__all__ = [
    # Compiler
    "compile_phrase",
    "convert_entities",
    "split_phrase_lines",
    "EntityTable",
    # Matcher tree
    "Alternatives",
    "FullPhrase",
    "MatcherNode",
    "Sequence",
    "Slot",
    "Wildcard",
    "Word",
    # Matching
    "Match",
    "PhraseSet",
    "SearchBudget",
    "try_match",
    "Token",
    "tokenize",
    # Errors
    "ParseError",
    "ParseErrorKind",
    "PhraseMatchError",
    "SearchBudgetExceeded",
    "UnknownEntityError",
]
