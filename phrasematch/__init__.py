"""phrasematch - match spoken-style commands against phrase templates."""

from .config import LinguisticResource, MatcherSettings
from .core.phrases import (
    FullPhrase,
    Match,
    ParseError,
    PhraseMatchError,
    PhraseSet,
    SearchBudgetExceeded,
    UnknownEntityError,
    compile_phrase,
    convert_entities,
    split_phrase_lines,
)

__version__ = "0.1.0"

__all__ = [
    "FullPhrase",
    "LinguisticResource",
    "Match",
    "MatcherSettings",
    "ParseError",
    "PhraseMatchError",
    "PhraseSet",
    "SearchBudgetExceeded",
    "UnknownEntityError",
    "compile_phrase",
    "convert_entities",
    "split_phrase_lines",
]
