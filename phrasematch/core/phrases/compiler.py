"""Template compiler: turns phrase templates into matcher trees.

Syntax:

* The phrase must be matched completely, beginning to end
* Words match that word (case-insensitive, or through an alias)
* A stopword can appear anywhere in the utterance and is ignored
* ``word?`` makes a single word optional
* ``*`` matches one or more words of anything
* ``page{s}`` (or ``page(s)``) matches "page" or "pages"
* ``(one | two | three four)`` matches exactly one alternative; each
  alternative may be several words that must appear together
* An empty alternative makes the group optional, like ``(page |)``;
  so does a ``?`` right after the closing parenthesis
* ``[name]`` is a slot that captures one or more words
* ``[name:entityType]`` is a typed slot that only accepts the surface
  forms of that entity
* ``[key=value]`` and ``{ key = value ... }`` are parameters: tags on the
  phrase that match nothing. Brace blocks may span lines, and repeated
  keys collect into a list

Example:
    >>> phrase = compile_phrase("(open | show) the? page{s} [query]")
    >>> phrase.slot_names()
    ['query']
"""

from __future__ import annotations

import logging
import re
import textwrap
from collections.abc import Iterable, Mapping
from dataclasses import replace

from .errors import ParseError, ParseErrorKind, UnknownEntityError
from .nodes import (
    Alternatives,
    FullPhrase,
    MatcherNode,
    Sequence,
    Slot,
    Wildcard,
    Word,
)
from .tokens import tokenize

logger = logging.getLogger(__name__)

EntityTable = Mapping[str, MatcherNode]

_OPENERS = {"(": ")", "[": "]", "{": "}"}
_CLOSERS = {close: open_ for open_, close in _OPENERS.items()}

# "page(s)" -> "page{s}"; same length, so error positions still line up
_ATTACHED_PAREN = re.compile(r"(?<=\S)\(([^\s)]+)\)")
_ALIAS_FRAGMENT = re.compile(r"\{([^{}]+)\}")
_PARAMETER_LEAD = re.compile(r"\[\s*[\w-]+\s*=")
_ASSIGNMENT = re.compile(r"\s*([a-zA-Z0-9_-]+)\s*=")
# Start of the next non-word construct inside a run of words
_RUN_END = re.compile(r"[(\[]|(?<=\s)\{")


# ============================================================================
# Entities
# ============================================================================


def convert_entities(entity_mapping: Mapping[str, Iterable[str]]) -> dict[str, Alternatives]:
    """Build the entity table consumed by compile_phrase().

    Typically called as ``convert_entities({"lang": ["English", "Spanish"]})``.
    Multi-word surface forms become a Sequence of words.

    Args:
        entity_mapping: Entity type name -> surface forms

    Returns:
        Entity type name -> Alternatives over its surface forms
    """
    result: dict[str, Alternatives] = {}
    for name, surfaces in entity_mapping.items():
        if isinstance(surfaces, str):
            raise TypeError(f"Entity {name!r} must map to a list of strings, got a string")
        result[name] = Alternatives(tuple(_make_word_matcher(s) for s in surfaces))
    return result


def _make_word_matcher(string: str) -> MatcherNode:
    words = [Word(token.text) for token in tokenize(string)]
    if not words:
        raise ValueError(f"Empty entity value: {string!r}")
    if len(words) == 1:
        return words[0]
    return Sequence(tuple(words))


# ============================================================================
# Source splitting
# ============================================================================


def split_phrase_lines(source: str) -> list[str]:
    """Split a block of templates into one template per logical line.

    Newlines inside ``{}``, ``()`` or ``[]`` do not end a line, so a
    parameter block may span several lines. Blank lines and lines starting
    with ``#`` are dropped.

    Raises:
        ParseError: On a closing bracket without a matching opener (at the
            closer's position) or an opener that is never closed (at the
            opener's position)
    """
    if not isinstance(source, str):
        raise TypeError(f"Bad input: {source!r}")

    result: list[str] = []
    stack: list[tuple[str, int]] = []
    line_start = 0
    i = 0
    while i < len(source):
        if not stack and i == line_start and source[i:].lstrip(" \t").startswith("#"):
            # Comment: skip to end of line without counting brackets
            newline = source.find("\n", i)
            i = line_start = len(source) if newline == -1 else newline + 1
            continue
        c = source[i]
        if c in _CLOSERS:
            _close_bracket(stack, c, i)
        elif c in _OPENERS:
            stack.append((c, i))
        elif c == "\n" and not stack:
            _append_line(result, source[line_start:i])
            line_start = i + 1
        i += 1

    if stack:
        opener, position = stack[-1]
        raise ParseError(f'Open "{opener}" is never closed', position, ParseErrorKind.UNTERMINATED)
    _append_line(result, source[line_start:])
    return result


def _append_line(result: list[str], line: str) -> None:
    line = line.strip()
    if line and not line.startswith("#"):
        result.append(line)


def _close_bracket(stack: list[tuple[str, int]], c: str, position: int) -> None:
    if not stack:
        raise ParseError(f'Unbalanced "{c}"', position, ParseErrorKind.UNBALANCED)
    opener, _ = stack[-1]
    if _OPENERS[opener] != c:
        raise ParseError(
            f'Got "{c}" when expecting to close "{opener}"',
            position,
            ParseErrorKind.UNBALANCED,
        )
    stack.pop()


def _find_close(text: str, start: int) -> int:
    """Return the index of the bracket closing the one at ``start``."""
    stack = [(text[start], start)]
    for i in range(start + 1, len(text)):
        c = text[i]
        if c in _OPENERS:
            stack.append((c, i))
        elif c in _CLOSERS:
            _close_bracket(stack, c, i)
            if not stack:
                return i
    opener, position = stack[-1]
    raise ParseError(f'Missing "{_OPENERS[opener]}"', position, ParseErrorKind.UNTERMINATED)


# ============================================================================
# Compiler
# ============================================================================


def compile_phrase(
    template: str,
    entities: EntityTable | None = None,
    intent_name: str | None = None,
) -> FullPhrase:
    """Compile one template into a FullPhrase.

    Args:
        template: Template string (see module docstring for syntax)
        entities: Entity table from convert_entities(), for typed slots
        intent_name: Intent reported by matches of this phrase

    Returns:
        Compiled, immutable FullPhrase

    Raises:
        ParseError: On malformed brackets or parameter blocks
        UnknownEntityError: If a typed slot names a missing entity type
    """
    if not isinstance(template, str):
        raise TypeError(f"Bad input: {template!r}")

    normalized = _ATTACHED_PAREN.sub(lambda m: "{" + m.group(1) + "}", template)
    parser = _TemplateParser(normalized, entities or {})
    body, parameters = parser.parse()

    logger.debug(f"Compiled {template!r}: {body}")
    return FullPhrase(
        body=body,
        intent_name=intent_name,
        parameters=parameters,
        original_source=template,
    )


class _TemplateParser:
    """Recursive-descent parser over one template string.

    Dispatches on the character at the cursor: a parameter block, a slot,
    an alternatives group, or a run of plain words.
    """

    def __init__(self, text: str, entities: EntityTable) -> None:
        self.text = text
        self.entities = entities
        self.pos = 0
        self.nodes: list[MatcherNode] = []
        self.parameters: dict[str, str | list[str]] = {}

    def parse(self) -> tuple[Sequence, dict[str, str | list[str]]]:
        text = self.text
        while True:
            while self.pos < len(text) and text[self.pos].isspace():
                self.pos += 1
            if self.pos >= len(text):
                break
            c = text[self.pos]
            if c == "{" or _PARAMETER_LEAD.match(text, self.pos):
                self._parse_parameters()
            elif c == "[":
                self.nodes.append(self._parse_slot())
            elif c == "(":
                self.nodes.append(self._parse_alternatives())
            else:
                self._parse_words()
        return Sequence(tuple(self.nodes)), self.parameters

    # --- Words ---

    def _parse_words(self) -> None:
        match = _RUN_END.search(self.text, self.pos)
        end = match.start() if match else len(self.text)
        self.nodes.extend(self._expand_run(self.text[self.pos : end], self.pos))
        self.pos = end

    def _expand_run(self, run: str, offset: int) -> list[MatcherNode]:
        return [
            self._expand_word(word_match.group(), offset + word_match.start())
            for word_match in re.finditer(r"\S+", run)
        ]

    def _expand_word(self, word: str, position: int) -> MatcherNode:
        optional = False
        if word.endswith("?"):
            optional = True
            word = word[:-1]
        if not word:
            raise ParseError('"?" must follow a word', position, ParseErrorKind.UNEXPECTED_TEXT)
        if word == "*":
            return Wildcard(optional)

        self._check_word_brackets(word, position)
        if not _ALIAS_FRAGMENT.search(word):
            return Word(word, optional)

        base = _ALIAS_FRAGMENT.sub("", word)
        alt = _ALIAS_FRAGMENT.sub(lambda m: m.group(1), word)
        if not base:
            return Word(alt, optional=True)
        return Alternatives((Word(base), Word(alt)), optional)

    def _check_word_brackets(self, word: str, position: int) -> None:
        brace_at = None
        for i, c in enumerate(word):
            if c in ")]" or (c == "}" and brace_at is None):
                raise ParseError(f'Unbalanced "{c}"', position + i, ParseErrorKind.UNBALANCED)
            if c in "([" or (c == "{" and brace_at is not None):
                raise ParseError(f'Unexpected "{c}" inside a word', position + i, ParseErrorKind.NESTED)
            if c == "{":
                brace_at = i
            elif c == "}":
                brace_at = None
        if brace_at is not None:
            raise ParseError('Missing "}"', position + brace_at, ParseErrorKind.UNTERMINATED)

    # --- Alternatives ---

    def _parse_alternatives(self) -> Alternatives:
        start = self.pos
        end = _find_close(self.text, start)
        self._reject_nested(start, end, "([")

        options: list[MatcherNode] = []
        optional = False
        offset = start + 1
        for segment in self.text[start + 1 : end].split("|"):
            nodes = self._expand_run(segment, offset)
            offset += len(segment) + 1
            if not nodes:
                optional = True
            elif len(nodes) == 1:
                options.append(nodes[0])
            else:
                options.append(Sequence(tuple(nodes)))

        self.pos = end + 1
        if self.text.startswith("?", self.pos):
            optional = True
            self.pos += 1
        return Alternatives(tuple(options), optional)

    # --- Slots ---

    def _parse_slot(self) -> Slot:
        start = self.pos
        end = _find_close(self.text, start)
        self._reject_nested(start, end, "([{")

        inner = self.text[start + 1 : end]
        raw_name, colon, raw_type = inner.partition(":")
        name = raw_name.strip()
        entity_type = raw_type.strip()
        if not name:
            raise ParseError("Slot has no name", start, ParseErrorKind.EMPTY_SLOT)

        self.pos = end + 1
        optional = False
        if self.text.startswith("?", self.pos):
            optional = True
            self.pos += 1

        if not colon:
            return Slot(name, Wildcard(optional))

        if entity_type not in self.entities:
            type_position = start + len(raw_name) + 2 + len(raw_type) - len(raw_type.lstrip())
            raise UnknownEntityError(entity_type, type_position)
        node = self.entities[entity_type]
        if optional:
            node = _make_optional(node)
        return Slot(name, node, entity_type=entity_type)

    # --- Parameters ---

    def _parse_parameters(self) -> None:
        start = self.pos
        end = _find_close(self.text, start)
        body = self.text[start + 1 : end]
        self.pos = end + 1

        assignments = list(_ASSIGNMENT.finditer(body))
        if not assignments:
            raise ParseError(
                f"No variables in {self.text[start : end + 1]!r}",
                start,
                ParseErrorKind.NO_PARAMETERS,
            )
        leading = body[: assignments[0].start()]
        if leading.strip():
            raise ParseError(
                f"Unexpected text before variable assignment ({leading.strip()!r})",
                start + 1 + len(leading) - len(leading.lstrip()),
                ParseErrorKind.UNEXPECTED_TEXT,
            )

        for i, assignment in enumerate(assignments):
            value_end = assignments[i + 1].start() if i + 1 < len(assignments) else len(body)
            value = _dedent_value(body[assignment.end() : value_end])
            _add_parameter(self.parameters, assignment.group(1), value)

    def _reject_nested(self, start: int, end: int, openers: str) -> None:
        for i in range(start + 1, end):
            if self.text[i] in openers:
                raise ParseError(
                    f'"{self.text[i]}" is not allowed inside "{self.text[start]}"',
                    i,
                    ParseErrorKind.NESTED,
                )


def _make_optional(node: MatcherNode) -> MatcherNode:
    if isinstance(node, (Word, Wildcard, Alternatives)):
        return replace(node, optional=True)
    return Alternatives((node,), optional=True)


def _dedent_value(value: str) -> str:
    """Trim a parameter value and dedent its continuation lines."""
    first, newline, rest = value.strip().partition("\n")
    if not newline:
        return first
    return first + "\n" + textwrap.dedent(rest)


def _add_parameter(parameters: dict[str, str | list[str]], key: str, value: str) -> None:
    if key not in parameters:
        parameters[key] = value
        return
    existing = parameters[key]
    if isinstance(existing, list):
        existing.append(value)
    else:
        parameters[key] = [existing, value]
