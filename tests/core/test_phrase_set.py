"""Tests for PhraseSet matching, ranking and enumeration."""

from __future__ import annotations

import pytest

from phrasematch.config import LinguisticResource, MatcherSettings
from phrasematch.core.phrases import (
    PhraseSet,
    SearchBudgetExceeded,
    compile_phrase,
    convert_entities,
)


@pytest.fixture
def english() -> LinguisticResource:
    return LinguisticResource.for_language("english")


@pytest.fixture
def entities():
    return convert_entities(
        {
            "number": ["one", "two"],
            "site": ["google", "youtube"],
            "city": ["Paris", "New York"],
        }
    )


# ============================================================================
# Matching
# ============================================================================


class TestMatch:
    """Tests for PhraseSet.match()."""

    def test_no_match_returns_none(self, english: LinguisticResource) -> None:
        """None when no phrase matches."""
        phrases = PhraseSet([compile_phrase("open tab")], resource=english)
        assert phrases.match("close window") is None

    def test_single_match(self, english: LinguisticResource) -> None:
        """The only matching phrase is returned."""
        phrases = PhraseSet(
            [
                compile_phrase("open tab", intent_name="tab.open"),
                compile_phrase("close tab", intent_name="tab.close"),
            ],
            resource=english,
        )
        match = phrases.match("Close the tab, please")
        assert match is not None
        assert match.intent_name == "tab.close"
        assert match.utterance == "Close the tab, please"

    def test_literal_beats_slot(self, english: LinguisticResource) -> None:
        """A fully literal phrase wins over one using a slot."""
        phrases = PhraseSet(
            [
                compile_phrase("turn on the [device]", intent_name="device.on"),
                compile_phrase("turn on the lights", intent_name="lights.on"),
            ],
            resource=english,
        )
        match = phrases.match("turn on the lights")
        assert match is not None
        assert match.intent_name == "lights.on"
        assert match.slots == {}

        other = phrases.match("turn on the fan")
        assert other is not None
        assert other.intent_name == "device.on"
        assert other.slots == {"device": "fan"}

    def test_fewer_skipped_stopwords_wins(self, english: LinguisticResource) -> None:
        """A phrase that accounts for a stopword beats one that skips it."""
        phrases = PhraseSet(
            [
                compile_phrase("open tab", intent_name="short"),
                compile_phrase("open the tab", intent_name="long"),
            ],
            resource=english,
        )
        match = phrases.match("open the tab")
        assert match is not None
        assert match.intent_name == "long"

    def test_ties_keep_insertion_order(self, english: LinguisticResource) -> None:
        """Equally specific phrases rank by position in the set."""
        phrases = PhraseSet(
            [
                compile_phrase("search [query]", intent_name="first"),
                compile_phrase("search *", intent_name="second"),
            ],
            resource=english,
        )
        match = phrases.match("search cats")
        assert match is not None
        assert match.intent_name == "first"

    def test_match_all_ranked(self, english: LinguisticResource) -> None:
        """match_all() lists every match, most specific first."""
        phrases = PhraseSet(
            [
                compile_phrase("*", intent_name="anything"),
                compile_phrase("play [song]", intent_name="play"),
                compile_phrase("play hey jude", intent_name="exact"),
            ],
            resource=english,
        )
        ranked = phrases.match_all("play hey jude")
        assert [m.intent_name for m in ranked] == ["exact", "play", "anything"]

    def test_typed_slot_rejection(self, english: LinguisticResource) -> None:
        """Typed slots only match their entity forms."""
        entities = convert_entities({"number": ["one", "two"]})
        phrases = PhraseSet([compile_phrase("[n:number]", entities=entities)], resource=english)
        match = phrases.match("two")
        assert match is not None
        assert match.slots == {"n": "two"}
        assert phrases.match("three") is None

    def test_multi_word_entity_after_stopword(self, english: LinguisticResource, entities) -> None:
        """A stopword before a multi-word entity is skipped, not captured."""
        phrases = PhraseSet([compile_phrase("fly to [dest:city]", entities=entities)], resource=english)
        match = phrases.match("fly to the new york")
        assert match is not None
        assert match.slots == {"dest": "new york"}

    def test_optional_group(self, english: LinguisticResource) -> None:
        """(a|) matches an empty utterance and "a"."""
        phrases = PhraseSet([compile_phrase("(a|)")], resource=english)
        assert phrases.match("") is not None
        assert phrases.match("a") is not None

    def test_alias_shorthand(self, english: LinguisticResource) -> None:
        """page(s) matches page and pages."""
        phrases = PhraseSet([compile_phrase("page(s)")], resource=english)
        assert phrases.match("page") is not None
        assert phrases.match("pages") is not None

    def test_language_aliases(self, english: LinguisticResource) -> None:
        """Aliases from the language resource apply."""
        phrases = PhraseSet([compile_phrase("turn on the light")], resource=english)
        assert phrases.match("turn on the lite") is not None

    def test_budget_exceeded_surfaces(self, english: LinguisticResource) -> None:
        """A phrase that exhausts its budget raises instead of not matching."""
        settings = MatcherSettings(max_steps=10)
        phrases = PhraseSet([compile_phrase("* * *")], resource=english, settings=settings)
        with pytest.raises(SearchBudgetExceeded):
            phrases.match("one two three four five six seven eight")


# ============================================================================
# Construction
# ============================================================================


class TestConstruction:
    """Tests for building phrase sets."""

    def test_default_resource_is_english(self) -> None:
        """Without a resource, the configured language is loaded."""
        phrases = PhraseSet([], settings=MatcherSettings(language="english"))
        assert phrases.resource.language == "english"
        assert phrases.resource.is_stopword("the")

    def test_add_len_iter(self, english: LinguisticResource) -> None:
        """Phrases can be appended and iterated."""
        phrases = PhraseSet(resource=english)
        first = compile_phrase("one")
        second = compile_phrase("two")
        phrases.add(first)
        phrases.add(second)
        assert len(phrases) == 2
        assert list(phrases) == [first, second]

    def test_from_source(self, english: LinguisticResource) -> None:
        """from_source() splits and compiles every template line."""
        source = """
        # Tab commands
        close (this | the)? tab{s}
        open tab {
            target = new
            focus = yes
        }
        """
        phrases = PhraseSet.from_source(source, intent_name="tabs", resource=english)
        assert len(phrases) == 2

        match = phrases.match("open tab")
        assert match is not None
        assert match.intent_name == "tabs"
        assert match.parameters == {"target": "new", "focus": "yes"}
        assert phrases.match("close this tabs") is not None


# ============================================================================
# Enumeration
# ============================================================================


class TestEnumeratePhrases:
    """Tests for PhraseSet.enumerate_phrases()."""

    def test_all_combinations(self, english: LinguisticResource) -> None:
        """Every option is used and optional parts are dropped in some variants."""
        phrases = PhraseSet([compile_phrase("(open | show) the? page{s} [query]")], resource=english)
        examples = phrases.enumerate_phrases(lambda name: "cats")
        assert len(examples) == 8
        assert "open the page cats" in examples
        assert "show pages cats" in examples

    def test_restartable_with_new_filler(self, english: LinguisticResource) -> None:
        """Each call produces a fresh list using the given filler."""
        phrases = PhraseSet([compile_phrase("play [song]")], resource=english)
        assert phrases.enumerate_phrases(lambda name: "jazz") == ["play jazz"]
        assert phrases.enumerate_phrases(lambda name: "blues") == ["play blues"]

    def test_typed_slot_without_filler_uses_entity(
        self, english: LinguisticResource, entities
    ) -> None:
        """A typed slot with no filler value uses its entity's forms."""
        phrases = PhraseSet(
            [compile_phrase("go to tab [n:number]", entities=entities)], resource=english
        )
        assert phrases.enumerate_phrases(lambda name: None) == [
            "go to tab one",
            "go to tab two",
        ]

    def test_wildcard_placeholder(self, english: LinguisticResource) -> None:
        """Bare wildcards are filled with a placeholder."""
        phrases = PhraseSet([compile_phrase("say *")], resource=english)
        assert phrases.enumerate_phrases(lambda name: "x") == ["say anything"]

    def test_limit_per_phrase(self, english: LinguisticResource) -> None:
        """max_enumerations caps the variants of each phrase."""
        settings = MatcherSettings(max_enumerations=3)
        phrases = PhraseSet(
            [compile_phrase("(a | b | c) (d | e | f)")], resource=english, settings=settings
        )
        assert phrases.enumerate_phrases(lambda name: "x") == ["a d", "b d", "c d"]

    def test_limit_keeps_omitted_optional_parts(self, english: LinguisticResource) -> None:
        """Under a cap, an optional word still appears both used and left out."""
        settings = MatcherSettings(max_enumerations=5)
        phrases = PhraseSet(
            [compile_phrase("x? (a | b | c) (d | e | f)")], resource=english, settings=settings
        )
        examples = phrases.enumerate_phrases(lambda name: "y")
        assert len(examples) == 5
        assert any(example.startswith("x ") for example in examples)
        assert any(not example.startswith("x ") for example in examples)
        assert examples[:2] == ["x a d", "a d"]

    def test_limit_shows_every_option(self, english: LinguisticResource) -> None:
        """Each option of each group is used before combinations repeat them."""
        settings = MatcherSettings(max_enumerations=5)
        phrases = PhraseSet(
            [compile_phrase("(a | b | c) (d | e | f)")], resource=english, settings=settings
        )
        examples = phrases.enumerate_phrases(lambda name: "y")
        assert examples == ["a d", "b d", "c d", "a e", "a f"]

    @pytest.mark.parametrize(
        "template",
        [
            "(open | show) the? page{s} [query]",
            "go to tab [n:number]",
            "search (for |) * on [site:site]",
            "turn on the? [device] please?",
            "move [item] to [place] {speed = fast}",
            "remind me (to |) [task] (tomorrow | tonight)?",
            "fly to the? [dest:city]",
        ],
    )
    def test_enumerated_phrases_match(
        self, english: LinguisticResource, entities, template: str
    ) -> None:
        """Every enumerated utterance matches and recovers the filled slots."""
        fillers = {
            "query": "cats",
            "n": "two",
            "site": "youtube",
            "device": "lamp",
            "item": "red box",
            "place": "top shelf",
            "task": "shopping",
            "dest": "New York",
        }
        phrase = compile_phrase(template, entities=entities)
        phrases = PhraseSet([phrase], resource=english)

        examples = phrases.enumerate_phrases(fillers.get)
        assert examples
        for utterance in examples:
            match = phrases.match(utterance)
            assert match is not None, utterance
            for name in phrase.slot_names():
                assert match.slots.get(name) == fillers[name], utterance

    def test_adjacent_untyped_slots_split_early(self, english: LinguisticResource) -> None:
        """Adjacent untyped slots have no boundary, so the first takes one word."""
        phrases = PhraseSet([compile_phrase("put [a] [b]")], resource=english)
        fillers = {"a": "red box", "b": "shelf"}
        assert phrases.enumerate_phrases(fillers.get) == ["put red box shelf"]

        match = phrases.match("put red box shelf")
        assert match is not None
        assert match.slots == {"a": "red", "b": "box shelf"}
