"""phrasematch Configuration.

Includes:
- LinguisticResource: Stopword set and alias table for one language
- MatcherSettings: Matcher settings with environment variable support

Environment Variables:
    PHRASEMATCH_LANGUAGE: Name of the packaged linguistic resource
    PHRASEMATCH_RESOURCE_PATH: YAML file used instead of the packaged resource
    PHRASEMATCH_MAX_STEPS: Search step budget per phrase match attempt
    PHRASEMATCH_MAX_ENUMERATIONS: Cap on example utterances per phrase
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from ruamel.yaml import YAML

logger = logging.getLogger(__name__)

DATA_DIR = Path(__file__).parent / "data"


class LinguisticResource(BaseModel):
    """Stopwords and aliases for a language.

    Stopwords may be skipped anywhere in an utterance. Aliases map
    alternate spellings (or common mishearings) onto a canonical word, and
    a template word matches any token with the same canonical form.

    In YAML the alias table is written canonical-first::

        aliases:
          light: [lite, lights]

    and is stored flattened as ``{"lite": "light", "lights": "light"}``.

    Attributes:
        language: Name of the language this resource describes
        stopwords: Case-folded ignorable words
        aliases: Mapping of variant -> canonical word
    """

    model_config = ConfigDict(frozen=True)

    language: str = "custom"
    stopwords: frozenset[str] = Field(default_factory=frozenset)
    aliases: dict[str, str] = Field(default_factory=dict)

    @field_validator("stopwords", mode="before")
    @classmethod
    def normalize_stopwords(cls, v: Any) -> frozenset[str]:
        """Case-fold stopwords."""
        if v is None:
            return frozenset()
        return frozenset(str(word).strip().casefold() for word in v if str(word).strip())

    @field_validator("aliases", mode="before")
    @classmethod
    def flatten_aliases(cls, v: Any) -> dict[str, str]:
        """Accept ``canonical: [variants]`` and flatten to ``variant: canonical``."""
        if v is None:
            return {}
        flat: dict[str, str] = {}
        for canonical, variants in dict(v).items():
            canonical = str(canonical).casefold()
            if isinstance(variants, str):
                variants = [variants]
            for variant in variants:
                flat[str(variant).casefold()] = canonical
        return flat

    def is_stopword(self, word: str) -> bool:
        """Check whether a case-folded word is ignorable."""
        return word in self.stopwords

    def canonical(self, word: str) -> str:
        """Map a case-folded word to its canonical form."""
        return self.aliases.get(word, word)

    def equivalent(self, word: str, literal: str) -> bool:
        """Check whether two case-folded words match directly or via aliases."""
        return word == literal or self.canonical(word) == self.canonical(literal)

    @classmethod
    def empty(cls) -> LinguisticResource:
        """A resource with no stopwords and no aliases."""
        return cls(language="none")

    @classmethod
    def from_yaml(cls, path: Path) -> LinguisticResource:
        """Load a resource from a YAML file.

        Args:
            path: File with ``stopwords`` and ``aliases`` keys

        Returns:
            LinguisticResource (language defaults to the file stem)
        """
        yaml = YAML()
        with path.open() as f:
            data = yaml.load(f) or {}

        resource = cls(
            language=data.get("language", path.stem),
            stopwords=data.get("stopwords"),
            aliases=data.get("aliases"),
        )
        logger.info(
            f"Loaded linguistic resource {resource.language!r}: "
            f"{len(resource.stopwords)} stopwords, {len(resource.aliases)} aliases"
        )
        return resource

    @classmethod
    def for_language(cls, language: str) -> LinguisticResource:
        """Load a packaged resource by language name.

        Raises:
            FileNotFoundError: If no resource ships for ``language``
        """
        path = DATA_DIR / f"{language}.yaml"
        if not path.exists():
            raise FileNotFoundError(f"No linguistic resource for language {language!r}")
        return cls.from_yaml(path)


class MatcherSettings(BaseSettings):
    """Matcher configuration with environment variable support.

    Configuration is loaded from environment variables with PHRASEMATCH_
    prefix. For example, PHRASEMATCH_MAX_STEPS sets max_steps.

    Precedence (highest to lowest):
        1. Environment variables (PHRASEMATCH_*)
        2. Config file (phrasematch.yaml)
        3. Default values
    """

    model_config = SettingsConfigDict(
        env_prefix="PHRASEMATCH_",
        extra="ignore",
    )

    language: str = "english"
    resource_path: Optional[Path] = None

    # Search steps allowed for one phrase against one utterance
    max_steps: int = Field(default=1_000_000, gt=0)

    # Example utterances produced per phrase by enumerate_phrases()
    max_enumerations: int = Field(default=1000, gt=0)

    def load_resource(self) -> LinguisticResource:
        """Load the configured linguistic resource."""
        if self.resource_path is not None:
            return LinguisticResource.from_yaml(Path(self.resource_path).expanduser())
        return LinguisticResource.for_language(self.language)

    @classmethod
    def load(cls, path: Path) -> MatcherSettings:
        """Load settings from phrasematch.yaml in ``path`` if it exists.

        Values from the file are passed as init arguments, which
        pydantic-settings ranks above defaults; environment variables
        are applied on top.

        Args:
            path: Directory to look for the config file in

        Returns:
            MatcherSettings with file values applied
        """
        config_file = path / "phrasematch.yaml"
        values: dict[str, Any] = {}

        if config_file.exists():
            yaml = YAML()
            with config_file.open() as f:
                data = yaml.load(f)
            if data:
                values = {k: v for k, v in data.items() if k in cls.model_fields}

        settings = cls(**values)
        # Environment wins over the file
        env_settings = cls()
        for name in cls.model_fields:
            if name in env_settings.model_fields_set:
                setattr(settings, name, getattr(env_settings, name))
        return settings


__all__ = ["LinguisticResource", "MatcherSettings"]
