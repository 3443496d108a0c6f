"""A collection of compiled phrases matched as a group.

PhraseSet.match() runs every phrase against an utterance and returns the
most specific successful match: the one that skipped the fewest stopwords,
then the one that absorbed the fewest tokens into wildcards, then the one
added first.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Iterator
from itertools import product
from typing import Optional

from ...config import LinguisticResource, MatcherSettings
from .compiler import EntityTable, compile_phrase, split_phrase_lines
from .engine import Match, SearchBudget, try_match
from .nodes import Alternatives, FullPhrase, MatcherNode, Sequence, Slot, Wildcard, Word
from .tokens import tokenize

logger = logging.getLogger(__name__)

# Stand-in text for a bare "*" when enumerating example utterances
WILDCARD_FILLER = "anything"

SlotFiller = Callable[[str], Optional[str]]


class PhraseSet:
    """Ordered set of phrases with best-match selection.

    Attributes:
        phrases: Compiled phrases, in priority order for ties
        resource: Stopwords and aliases used for matching
        settings: Search budget and enumeration limits
    """

    def __init__(
        self,
        phrases: Iterable[FullPhrase] = (),
        resource: LinguisticResource | None = None,
        settings: MatcherSettings | None = None,
    ) -> None:
        self.settings = settings or MatcherSettings()
        self.resource = resource if resource is not None else self.settings.load_resource()
        self.phrases: list[FullPhrase] = list(phrases)

    @classmethod
    def from_source(
        cls,
        source: str,
        entities: EntityTable | None = None,
        intent_name: str | None = None,
        resource: LinguisticResource | None = None,
        settings: MatcherSettings | None = None,
    ) -> PhraseSet:
        """Compile every template line of ``source`` into a new PhraseSet.

        Raises:
            ParseError: If the source or any template is malformed
        """
        phrases = [
            compile_phrase(line, entities=entities, intent_name=intent_name)
            for line in split_phrase_lines(source)
        ]
        return cls(phrases, resource=resource, settings=settings)

    def add(self, phrase: FullPhrase) -> None:
        """Append a phrase; it ranks below existing phrases on ties."""
        self.phrases.append(phrase)

    def __len__(self) -> int:
        return len(self.phrases)

    def __iter__(self) -> Iterator[FullPhrase]:
        return iter(self.phrases)

    def match_all(self, utterance: str) -> list[Match]:
        """Every phrase that matches ``utterance``, most specific first.

        Raises:
            SearchBudgetExceeded: If any phrase exhausts its search budget
        """
        tokens = tokenize(utterance)
        ranked: list[tuple[tuple[int, int], int, Match]] = []
        for index, phrase in enumerate(self.phrases):
            budget = SearchBudget(self.settings.max_steps)
            result = try_match(phrase, tokens, self.resource, budget, utterance)
            if result is not None:
                ranked.append((result.score, index, result))

        ranked.sort(key=lambda item: (item[0], item[1]))
        logger.debug(f"{len(ranked)} of {len(self.phrases)} phrases matched {utterance!r}")
        return [item[2] for item in ranked]

    def match(self, utterance: str) -> Match | None:
        """Best match for ``utterance``, or None if no phrase matches.

        Raises:
            SearchBudgetExceeded: If any phrase exhausts its search budget
        """
        matches = self.match_all(utterance)
        return matches[0] if matches else None

    def enumerate_phrases(self, filler: SlotFiller) -> list[str]:
        """Produce example utterances for every phrase.

        Optional words and groups appear both included and omitted, and
        every alternative is used, up to ``settings.max_enumerations``
        utterances per phrase.

        Args:
            filler: Called with a slot name, returns the text to put in
                the slot. Returning None falls back to the entity's surface
                forms (typed slots) or a placeholder (untyped slots).

        Returns:
            De-duplicated example utterances, in phrase order
        """
        limit = self.settings.max_enumerations
        results: list[str] = []
        for phrase in self.phrases:
            results.extend(_variants(phrase.body, filler, limit))
        return list(dict.fromkeys(results))


def _variants(node: MatcherNode, filler: SlotFiller, limit: int) -> list[str]:
    if isinstance(node, Word):
        found = [node.literal]
    elif isinstance(node, Wildcard):
        found = [WILDCARD_FILLER]
    elif isinstance(node, Alternatives):
        found = []
        for option in node.options:
            found.extend(_variants(option, filler, limit))
    elif isinstance(node, Sequence):
        parts = [_variants(child, filler, limit) for child in node.children]
        found = []
        for combination in _spread_combinations(parts):
            text = " ".join(piece for piece in combination if piece)
            if text not in found:
                found.append(text)
                if len(found) >= limit:
                    break
    elif isinstance(node, Slot):
        value = filler(node.name)
        if value is not None:
            found = [value]
        elif isinstance(node.inner, Wildcard):
            found = [WILDCARD_FILLER]
        else:
            found = [v for v in _variants(node.inner, filler, limit) if v]
    else:
        raise TypeError(f"Unknown matcher node: {node!r}")

    if getattr(node, "optional", False):
        found.append("")
    return list(dict.fromkeys(found))[:limit]


def _spread_combinations(parts: list[list[str]]) -> Iterator[tuple[str, ...]]:
    """Yield combinations of ``parts``, varying one part at a time first.

    The first combination takes every part's first variant. Each other
    variant of each part (including the empty variant of an optional part)
    then appears once against those defaults, before the full product
    follows. A capped enumeration therefore still shows every option and
    every optional part left out.
    """
    if not all(parts):
        return
    defaults = tuple(variants[0] for variants in parts)
    yield defaults
    for i, variants in enumerate(parts):
        for variant in variants[1:]:
            yield defaults[:i] + (variant,) + defaults[i + 1 :]
    yield from product(*parts)
