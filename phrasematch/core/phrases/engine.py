"""Match engine: aligns a tokenized utterance with a compiled phrase.

Rather than backtracking through every way a template can consume the
utterance, the search computes, for each (node, start position), the set
of positions where the node can end together with the cheapest way of
getting there. Results are memoized per attempt, so nested optional groups
and wildcards cost polynomial time in utterance length.

The cost of an alignment is ``(skipped_stopwords, wildcard_tokens)``,
compared lexicographically: an alignment that matches words literally is
preferred over one that skips them or swallows them into wildcards. When
two alignments cost the same the first one found wins, which prefers
shorter leading wildcards. Alternatives are the exception: for each end
position the earliest option that reaches it is used, whatever it costs.

Stopwords are skipped between the children of any sequence, but only the
phrase body skips them at its edges. A multi-word option or entity form
therefore never starts or ends on a skipped stopword, and slot spans never
include one that was skipped.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence as SequenceABC
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from .errors import SearchBudgetExceeded
from .nodes import (
    Alternatives,
    FullPhrase,
    MatcherNode,
    Sequence,
    Slot,
    Wildcard,
    Word,
)
from .tokens import Token, render_tokens

if TYPE_CHECKING:
    from ...config import LinguisticResource

logger = logging.getLogger(__name__)

DEFAULT_MAX_STEPS = 1_000_000


@dataclass(frozen=True)
class Match:
    """A successful match of an utterance against a phrase.

    Attributes:
        utterance: The utterance as given
        slots: Slot name -> matched words, as typed
        intent_name: Intent of the matched phrase
        phrase: The phrase that matched
        skipped_stopwords: Stopwords skipped by the alignment
        wildcard_tokens: Tokens absorbed by wildcards
    """

    utterance: str
    slots: dict[str, str] = field(default_factory=dict)
    intent_name: str | None = None
    phrase: FullPhrase | None = field(default=None, repr=False, compare=False)
    skipped_stopwords: int = 0
    wildcard_tokens: int = 0

    @property
    def parameters(self) -> dict[str, Any]:
        """Static parameters of the matched phrase."""
        return dict(self.phrase.parameters) if self.phrase else {}

    @property
    def score(self) -> tuple[int, int]:
        """Specificity cost; lower is more specific."""
        return (self.skipped_stopwords, self.wildcard_tokens)


class SearchBudget:
    """Step counter for one match attempt.

    Exceeding ``max_steps`` raises SearchBudgetExceeded, so a runaway
    template is reported instead of being mistaken for a non-match.
    """

    def __init__(self, max_steps: int = DEFAULT_MAX_STEPS) -> None:
        if max_steps <= 0:
            raise ValueError("max_steps must be positive")
        self.max_steps = max_steps
        self.steps = 0

    def tick(self, count: int = 1) -> None:
        self.steps += count
        if self.steps > self.max_steps:
            raise SearchBudgetExceeded(self.steps, self.max_steps)


@dataclass(frozen=True)
class _Outcome:
    """Cheapest known way for a node to reach some end position."""

    skipped: int = 0
    wildcard: int = 0
    # (slot name, start, end) in match order
    spans: tuple[tuple[str, int, int], ...] = ()

    @property
    def cost(self) -> tuple[int, int]:
        return (self.skipped, self.wildcard)

    def then(self, other: _Outcome) -> _Outcome:
        return _Outcome(
            self.skipped + other.skipped,
            self.wildcard + other.wildcard,
            self.spans + other.spans,
        )


_EMPTY = _Outcome()

Ends = dict[int, _Outcome]


def _offer(ends: Ends, end: int, outcome: _Outcome) -> None:
    """Record ``outcome`` for ``end`` unless an equal or cheaper one exists."""
    current = ends.get(end)
    if current is None or outcome.cost < current.cost:
        ends[end] = outcome


class _Search:
    """Per-attempt search state: memo table, budget and token facts."""

    def __init__(
        self,
        tokens: SequenceABC[Token],
        resource: LinguisticResource,
        budget: SearchBudget,
        root: Sequence | None = None,
    ) -> None:
        self.tokens = tokens
        self.resource = resource
        self.budget = budget
        # Only this sequence skips stopwords before its first child and after its last
        self.root = root
        self.size = len(tokens)
        self.stopword = [resource.is_stopword(token.word) for token in tokens]
        self._memo: dict[tuple[int, int], Ends] = {}
        self._min_width: dict[int, int] = {}

    def ends(self, node: MatcherNode, start: int) -> Ends:
        key = (id(node), start)
        cached = self._memo.get(key)
        if cached is not None:
            return cached
        self.budget.tick()

        if isinstance(node, Word):
            result = self._word(node, start)
        elif isinstance(node, Wildcard):
            result = self._wildcard(node, start)
        elif isinstance(node, Alternatives):
            result = self._alternatives(node, start)
        elif isinstance(node, Sequence):
            result = self._sequence(node, start)
        elif isinstance(node, Slot):
            result = self._slot(node, start)
        else:
            raise TypeError(f"Unknown matcher node: {node!r}")

        self._memo[key] = result
        return result

    def min_width(self, node: MatcherNode) -> int:
        """Fewest tokens ``node`` can possibly consume."""
        key = id(node)
        if key not in self._min_width:
            if isinstance(node, (Word, Wildcard)):
                width = 0 if node.optional else 1
            elif isinstance(node, Alternatives):
                widths = [self.min_width(option) for option in node.options]
                width = 0 if node.optional or not widths else min(widths)
            elif isinstance(node, Sequence):
                width = sum(self.min_width(child) for child in node.children)
            elif isinstance(node, Slot):
                width = self.min_width(node.inner)
            else:
                raise TypeError(f"Unknown matcher node: {node!r}")
            self._min_width[key] = width
        return self._min_width[key]

    # --- Node rules ---

    def _word(self, node: Word, start: int) -> Ends:
        ends: Ends = {}
        if start < self.size and self.resource.equivalent(self.tokens[start].word, node.key):
            ends[start + 1] = _EMPTY
        if node.optional:
            _offer(ends, start, _EMPTY)
        return ends

    def _wildcard(self, node: Wildcard, start: int) -> Ends:
        ends: Ends = {}
        if node.optional:
            ends[start] = _EMPTY
        for end in range(start + 1, self.size + 1):
            ends[end] = _Outcome(wildcard=end - start)
        self.budget.tick(len(ends))
        return ends

    def _alternatives(self, node: Alternatives, start: int) -> Ends:
        ends: Ends = {}
        # Declared order: a later option never replaces an earlier one
        for option in node.options:
            for end, outcome in self.ends(option, start).items():
                ends.setdefault(end, outcome)
        if node.optional:
            ends.setdefault(start, _EMPTY)
        return ends

    def _slot(self, node: Slot, start: int) -> Ends:
        ends: Ends = {}
        for end, outcome in self.ends(node.inner, start).items():
            if end > start:
                outcome = outcome.then(_Outcome(spans=((node.name, start, end),)))
            ends[end] = outcome
        return ends

    def _sequence(self, node: Sequence, start: int) -> Ends:
        children = node.children
        # remaining[i]: tokens children[i:] need at minimum
        remaining = [0] * (len(children) + 1)
        for i in range(len(children) - 1, -1, -1):
            remaining[i] = remaining[i + 1] + self.min_width(children[i])

        outermost = node is self.root
        frontier: Ends = {start: _EMPTY}
        for i, child in enumerate(children):
            if i > 0 or outermost:
                frontier = self._skip_stopwords(frontier)
            following: Ends = {}
            for position in sorted(frontier):
                if self.size - position < remaining[i]:
                    continue
                so_far = frontier[position]
                for end, outcome in self.ends(child, position).items():
                    if self.size - end < remaining[i + 1]:
                        continue
                    _offer(following, end, so_far.then(outcome))
                self.budget.tick(len(following) + 1)
            if not following:
                return {}
            frontier = following
        if outermost:
            frontier = self._skip_stopwords(frontier)
        return frontier

    def _skip_stopwords(self, frontier: Ends) -> Ends:
        """Extend each position over any run of stopwords that follows it."""
        expanded: Ends = {}
        for position in sorted(frontier):
            outcome = frontier[position]
            _offer(expanded, position, outcome)
            skipped = 0
            while position + skipped < self.size and self.stopword[position + skipped]:
                skipped += 1
                _offer(
                    expanded,
                    position + skipped,
                    outcome.then(_Outcome(skipped=skipped)),
                )
        self.budget.tick(len(expanded))
        return expanded


def try_match(
    phrase: FullPhrase,
    tokens: SequenceABC[Token],
    resource: LinguisticResource,
    budget: SearchBudget | None = None,
    utterance: str | None = None,
) -> Match | None:
    """Match a whole tokenized utterance against one phrase.

    Args:
        phrase: Compiled phrase
        tokens: Tokens from tokenize()
        resource: Stopwords and aliases to match with
        budget: Step budget for this attempt (a default budget if omitted)
        utterance: Original utterance text, reported on the Match

    Returns:
        Match on success, None if the phrase does not match

    Raises:
        SearchBudgetExceeded: If the search needs more steps than allowed
    """
    budget = budget or SearchBudget()
    search = _Search(tokens, resource, budget, root=phrase.body)
    try:
        outcome = search.ends(phrase.body, 0).get(len(tokens))
    except SearchBudgetExceeded as e:
        logger.warning(f"Gave up matching {phrase.original_source!r} after {e.steps} steps")
        raise SearchBudgetExceeded(e.steps, e.max_steps, phrase.original_source) from e

    if outcome is None:
        return None

    slots = {
        name: render_tokens(tokens[slot_start:slot_end])
        for name, slot_start, slot_end in outcome.spans
    }
    if utterance is None:
        utterance = render_tokens(tokens)
    logger.debug(f"Matched {utterance!r} with {phrase.original_source!r}: {slots}")
    return Match(
        utterance=utterance,
        slots=slots,
        intent_name=phrase.intent_name,
        phrase=phrase,
        skipped_stopwords=outcome.skipped,
        wildcard_tokens=outcome.wildcard,
    )
