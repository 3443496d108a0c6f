"""Matcher tree produced by the template compiler.

The tree is a closed set of node types:

- Word: one literal token (alias-aware)
- Wildcard: a free-form span of one or more tokens
- Alternatives: exactly one of several options
- Sequence: children in order
- Slot: a named capture around any other node

Nodes are frozen dataclasses and never change after compilation, so a
compiled phrase can be shared between threads and matched repeatedly.
"""

from __future__ import annotations

import io
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Union

from rich.console import Console
from rich.text import Text
from rich.tree import Tree

from .tokens import normalize_word


@dataclass(frozen=True)
class Word:
    """A literal word, matched case-insensitively or through an alias."""

    literal: str
    optional: bool = False
    key: str = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "key", normalize_word(self.literal))

    def __str__(self) -> str:
        return self.literal + ("?" if self.optional else "")


@dataclass(frozen=True)
class Wildcard:
    """One or more contiguous tokens (zero or more when optional)."""

    optional: bool = False

    def __str__(self) -> str:
        return "*?" if self.optional else "*"


@dataclass(frozen=True)
class Alternatives:
    """Matches exactly one of its options, tried in declared order."""

    options: tuple[MatcherNode, ...]
    optional: bool = False

    def __str__(self) -> str:
        inner = " | ".join(str(option) for option in self.options)
        if self.optional:
            inner += " |"
        return f"({inner})"


@dataclass(frozen=True)
class Sequence:
    """Children matched contiguously, in order."""

    children: tuple[MatcherNode, ...] = ()

    def __str__(self) -> str:
        return " ".join(str(child) for child in self.children)


@dataclass(frozen=True)
class Slot:
    """Records the span matched by ``inner`` under ``name``.

    Untyped slots wrap a Wildcard; typed slots wrap the Alternatives built
    for ``entity_type`` by convert_entities().
    """

    name: str
    inner: MatcherNode
    entity_type: str | None = None

    @property
    def optional(self) -> bool:
        return bool(getattr(self.inner, "optional", False))

    def __str__(self) -> str:
        label = f"{self.name}:{self.entity_type}" if self.entity_type else self.name
        return f"[{label}]" + ("?" if self.optional else "")


MatcherNode = Union[Word, Wildcard, Alternatives, Sequence, Slot]


def walk(node: MatcherNode) -> Iterator[MatcherNode]:
    """Yield ``node`` and all of its descendants, depth first."""
    yield node
    if isinstance(node, Sequence):
        for child in node.children:
            yield from walk(child)
    elif isinstance(node, Alternatives):
        for option in node.options:
            yield from walk(option)
    elif isinstance(node, Slot):
        yield from walk(node.inner)


@dataclass(frozen=True)
class FullPhrase:
    """A compiled template.

    Attributes:
        body: Sequence matched against the whole utterance
        intent_name: Intent reported with every match of this phrase
        parameters: Static tags from [key=value] and {key=value} blocks
        original_source: The template string as written
    """

    body: Sequence
    intent_name: str | None = None
    parameters: dict[str, str | list[str]] = field(default_factory=dict)
    original_source: str = ""

    def slot_names(self) -> list[str]:
        """Names of every slot in the phrase, in template order."""
        names: list[str] = []
        for node in walk(self.body):
            if isinstance(node, Slot) and node.name not in names:
                names.append(node.name)
        return names

    def tree(self) -> Tree:
        """Build a rich Tree showing the phrase structure."""
        label = "FullPhrase"
        if self.intent_name:
            label += f" intent={self.intent_name}"
        root = Tree(Text(label))
        _add_branch(root, self.body)
        if self.parameters:
            params = root.add("parameters")
            for key, value in self.parameters.items():
                params.add(Text(f"{key} = {value!r}"))
        return root

    def describe(self, width: int = 100) -> str:
        """Render the phrase structure as plain text for diagnostics."""
        buffer = io.StringIO()
        console = Console(file=buffer, width=width, no_color=True, highlight=False)
        console.print(self.tree())
        return buffer.getvalue()

    def __str__(self) -> str:
        return self.original_source or str(self.body)


def _add_branch(parent: Tree, node: MatcherNode) -> None:
    if isinstance(node, Word):
        parent.add(Text(f"Word {node.literal!r}" + (" (optional)" if node.optional else "")))
    elif isinstance(node, Wildcard):
        parent.add(Text("Wildcard" + (" (optional)" if node.optional else "")))
    elif isinstance(node, Alternatives):
        branch = parent.add(Text("Alternatives" + (" (optional)" if node.optional else "")))
        for option in node.options:
            _add_branch(branch, option)
    elif isinstance(node, Sequence):
        branch = parent.add("Sequence")
        for child in node.children:
            _add_branch(branch, child)
    elif isinstance(node, Slot):
        label = f"Slot {node.name}"
        if node.entity_type:
            label += f":{node.entity_type}"
        branch = parent.add(Text(label))
        _add_branch(branch, node.inner)
    else:
        raise TypeError(f"Unknown matcher node: {node!r}")
