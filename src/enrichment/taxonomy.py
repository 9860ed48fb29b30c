"""Classification tables: role functions, spoken languages and job tags.

Loaded once from ``config/taxonomy.yaml`` at startup and treated as
immutable afterwards. The YAML is validated with Pydantic, then every
keyword is compiled into a whole-word regex so classification never
re-parses configuration.
"""
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Union

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from src.enrichment.exceptions import TaxonomyError
from src.enrichment.text import keyword_pattern, years_pattern

logger = logging.getLogger(__name__)

OTHER = "other"

REMOTE = "remote"
HYBRID = "hybrid"
ON_SITE = "on-site"


def _clean_keywords(v):
    """Lower-case, strip and drop empty keywords."""
    if isinstance(v, list):
        return [str(item).strip().lower() for item in v if item is not None and str(item).strip()]
    return v


def _compile(keywords) -> tuple[re.Pattern, ...]:
    return tuple(keyword_pattern(kw) for kw in keywords)


def _search(patterns, text: str) -> bool:
    return any(p.search(text) for p in patterns)


# =============================================================================
# YAML schema
# =============================================================================


class RoleFunctionConfig(BaseModel):
    """One taxonomy category as written in YAML."""
    name: str = Field(min_length=1)
    title_keywords: list[str] = Field(min_length=1)
    description_keywords: list[str] = Field(default_factory=list)
    title_excludes: list[str] = Field(default_factory=list)

    @field_validator("title_keywords", "description_keywords", "title_excludes", mode="before")
    @classmethod
    def clean_keywords(cls, v):
        return _clean_keywords(v)

    @field_validator("name")
    @classmethod
    def name_is_not_fallback(cls, v):
        v = v.strip().lower()
        if v == OTHER:
            raise ValueError(f"'{OTHER}' is reserved for unmatched jobs")
        return v


class TagConfig(BaseModel):
    """A tag and the keywords that imply it. A bare string is its own keyword."""
    name: str = Field(min_length=1)
    keywords: list[str] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def from_string(cls, data):
        if isinstance(data, str):
            return {"name": data}
        return data

    @field_validator("name")
    @classmethod
    def normalize_name(cls, v):
        return v.strip().lower()

    @field_validator("keywords", mode="before")
    @classmethod
    def clean_keywords(cls, v):
        return _clean_keywords(v)

    @model_validator(mode="after")
    def default_keywords(self):
        if not self.keywords:
            self.keywords = [self.name]
        return self


class EmploymentTypeConfig(BaseModel):
    name: str = Field(min_length=1)
    keywords: list[str] = Field(min_length=1)
    title_excludes: list[str] = Field(default_factory=list)
    level_excludes: list[str] = Field(default_factory=list)

    @field_validator("keywords", "title_excludes", "level_excludes", mode="before")
    @classmethod
    def clean_keywords(cls, v):
        return _clean_keywords(v)


class EmploymentTypesConfig(BaseModel):
    default: str = "full-time"
    types: list[EmploymentTypeConfig] = Field(default_factory=list)


class WorkLocationsConfig(BaseModel):
    remote: list[str] = Field(default_factory=list)
    hybrid: list[str] = Field(default_factory=list)
    office: list[str] = Field(default_factory=list)
    on_site: list[str] = Field(default_factory=list)

    @field_validator("remote", "hybrid", "office", "on_site", mode="before")
    @classmethod
    def clean_keywords(cls, v):
        return _clean_keywords(v)


class ExperienceLevelConfig(BaseModel):
    """One seniority level; any of its rules matching assigns it."""
    name: str = Field(min_length=1)
    title_keywords: list[str] = Field(default_factory=list)
    keywords: list[str] = Field(default_factory=list)
    years: list[str] = Field(default_factory=list)
    paired_keywords: list[str] = Field(default_factory=list)
    paired_with: list[str] = Field(default_factory=list)
    paired_with_years: list[str] = Field(default_factory=list)

    @field_validator(
        "title_keywords", "keywords", "years", "paired_keywords", "paired_with", "paired_with_years",
        mode="before",
    )
    @classmethod
    def clean_keywords(cls, v):
        return _clean_keywords(v)


class ExperienceLevelsConfig(BaseModel):
    default: str = "mid"
    levels: list[ExperienceLevelConfig] = Field(default_factory=list)


class TaxonomyConfig(BaseModel):
    """Top-level taxonomy YAML document."""
    role_functions: list[RoleFunctionConfig] = Field(min_length=1)
    description_fallback_order: list[str] = Field(default_factory=list)
    languages: dict[str, list[str]] = Field(default_factory=dict)
    language_groups: dict[str, list[str]] = Field(default_factory=dict)
    industries: list[TagConfig] = Field(default_factory=list)
    technologies: list[TagConfig] = Field(default_factory=list)
    skills: list[TagConfig] = Field(default_factory=list)
    employment_types: EmploymentTypesConfig = Field(default_factory=EmploymentTypesConfig)
    work_locations: WorkLocationsConfig = Field(default_factory=WorkLocationsConfig)
    experience_levels: ExperienceLevelsConfig = Field(default_factory=ExperienceLevelsConfig)

    @field_validator("languages", mode="before")
    @classmethod
    def clean_languages(cls, v):
        if isinstance(v, dict):
            return {str(code).strip().lower(): _clean_keywords(names) for code, names in v.items()}
        return v

    @field_validator("description_fallback_order", mode="before")
    @classmethod
    def clean_fallback_order(cls, v):
        return _clean_keywords(v)

    @model_validator(mode="after")
    def validate_references(self):
        names = [rf.name for rf in self.role_functions]
        if len(names) != len(set(names)):
            raise ValueError("Duplicate role function names")

        with_fallback = {rf.name for rf in self.role_functions if rf.description_keywords}
        for name in self.description_fallback_order:
            if name not in with_fallback:
                raise ValueError(
                    f"Fallback order names '{name}', which has no description keywords"
                )

        for alias, codes in self.language_groups.items():
            unknown = [c for c in codes if c not in self.languages]
            if unknown:
                raise ValueError(f"Language group '{alias}' references unknown codes {unknown}")

        level_names = {lvl.name for lvl in self.experience_levels.levels}
        for et in self.employment_types.types:
            unknown = [lvl for lvl in et.level_excludes if lvl not in level_names]
            if unknown:
                raise ValueError(f"Employment type '{et.name}' excludes unknown levels {unknown}")
        return self


# =============================================================================
# Compiled tables
# =============================================================================


@dataclass(frozen=True)
class RoleFunction:
    """A compiled taxonomy category."""

    name: str
    title_patterns: tuple[re.Pattern, ...]
    description_patterns: tuple[re.Pattern, ...] = ()
    title_exclude_patterns: tuple[re.Pattern, ...] = ()


@dataclass(frozen=True)
class LanguageAlias:
    """A compiled language keyword and the codes it implies."""

    keyword: str
    pattern: re.Pattern
    codes: frozenset[str]


@dataclass(frozen=True)
class Tag:
    name: str
    patterns: tuple[re.Pattern, ...]


@dataclass(frozen=True)
class EmploymentType:
    name: str
    patterns: tuple[re.Pattern, ...]
    title_exclude_patterns: tuple[re.Pattern, ...] = ()
    level_excludes: frozenset[str] = frozenset()


@dataclass(frozen=True)
class WorkLocationRules:
    remote: tuple[re.Pattern, ...] = ()
    hybrid: tuple[re.Pattern, ...] = ()
    office: tuple[re.Pattern, ...] = ()
    on_site: tuple[re.Pattern, ...] = ()


@dataclass(frozen=True)
class ExperienceLevel:
    """A compiled seniority level."""

    name: str
    title_patterns: tuple[re.Pattern, ...] = ()
    patterns: tuple[re.Pattern, ...] = ()
    year_patterns: tuple[re.Pattern, ...] = ()
    paired_patterns: tuple[re.Pattern, ...] = ()
    paired_with_patterns: tuple[re.Pattern, ...] = ()

    def matches(self, title: str, text: str) -> bool:
        if _search(self.title_patterns, title):
            return True
        if _search(self.patterns, text) or _search(self.year_patterns, text):
            return True
        # A weak keyword only counts next to corroborating evidence
        return _search(self.paired_patterns, text) and _search(self.paired_with_patterns, text)


@dataclass(frozen=True)
class Taxonomy:
    """Immutable, compiled classification tables."""

    role_functions: tuple[RoleFunction, ...]
    languages: tuple[LanguageAlias, ...]
    description_fallbacks: tuple[RoleFunction, ...] = ()
    industries: tuple[Tag, ...] = ()
    technologies: tuple[Tag, ...] = ()
    skills: tuple[Tag, ...] = ()
    employment_types: tuple[EmploymentType, ...] = ()
    default_employment_type: str = "full-time"
    work_locations: WorkLocationRules = field(default_factory=WorkLocationRules)
    experience_levels: tuple[ExperienceLevel, ...] = ()
    default_experience_level: str = "mid"

    @property
    def category_names(self) -> list[str]:
        """Category names in priority order, followed by the fallback."""
        return [rf.name for rf in self.role_functions] + [OTHER]

    @property
    def language_codes(self) -> frozenset[str]:
        codes: set[str] = set()
        for alias in self.languages:
            codes |= alias.codes
        return frozenset(codes)

    @classmethod
    def from_dict(cls, data: dict) -> "Taxonomy":
        """Validate and compile a taxonomy document."""
        try:
            config = TaxonomyConfig.model_validate(data or {})
        except ValidationError as e:
            raise TaxonomyError(str(e)) from e

        role_functions = tuple(
            RoleFunction(
                name=rf.name,
                title_patterns=_compile(rf.title_keywords),
                description_patterns=_compile(rf.description_keywords),
                title_exclude_patterns=_compile(rf.title_excludes),
            )
            for rf in config.role_functions
        )

        # Description fallbacks run in their own order; unlisted ones follow in priority order
        by_name = {rf.name: rf for rf in role_functions}
        fallbacks = [by_name[name] for name in config.description_fallback_order]
        fallbacks += [
            rf for rf in role_functions
            if rf.description_patterns and rf.name not in config.description_fallback_order
        ]

        languages = []
        for code, names in config.languages.items():
            for name in names:
                languages.append(
                    LanguageAlias(keyword=name, pattern=keyword_pattern(name), codes=frozenset([code]))
                )
        for alias, codes in config.language_groups.items():
            alias = alias.strip().lower()
            languages.append(
                LanguageAlias(keyword=alias, pattern=keyword_pattern(alias), codes=frozenset(codes))
            )

        def tags(configs):
            return tuple(Tag(name=t.name, patterns=_compile(t.keywords)) for t in configs)

        locations = config.work_locations
        return cls(
            role_functions=role_functions,
            languages=tuple(languages),
            description_fallbacks=tuple(fallbacks),
            industries=tags(config.industries),
            technologies=tags(config.technologies),
            skills=tags(config.skills),
            employment_types=tuple(
                EmploymentType(
                    name=et.name,
                    patterns=_compile(et.keywords),
                    title_exclude_patterns=_compile(et.title_excludes),
                    level_excludes=frozenset(et.level_excludes),
                )
                for et in config.employment_types.types
            ),
            default_employment_type=config.employment_types.default,
            work_locations=WorkLocationRules(
                remote=_compile(locations.remote),
                hybrid=_compile(locations.hybrid),
                office=_compile(locations.office),
                on_site=_compile(locations.on_site),
            ),
            experience_levels=tuple(
                ExperienceLevel(
                    name=lvl.name,
                    title_patterns=_compile(lvl.title_keywords),
                    patterns=_compile(lvl.keywords),
                    year_patterns=tuple(years_pattern(y) for y in lvl.years),
                    paired_patterns=_compile(lvl.paired_keywords),
                    paired_with_patterns=(
                        _compile(lvl.paired_with)
                        + tuple(years_pattern(y) for y in lvl.paired_with_years)
                    ),
                )
                for lvl in config.experience_levels.levels
            ),
            default_experience_level=config.experience_levels.default,
        )

    @classmethod
    def load(cls, path: Union[str, Path]) -> "Taxonomy":
        """Load a taxonomy from a YAML file."""
        try:
            with open(path, encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except OSError as e:
            raise TaxonomyError(f"cannot read {path}: {e}") from e
        except yaml.YAMLError as e:
            raise TaxonomyError(f"cannot parse {path}: {e}") from e

        taxonomy = cls.from_dict(data)
        logger.info(
            "Loaded taxonomy from %s: %d role functions, %d language keywords, "
            "%d industries, %d technologies, %d skills",
            path, len(taxonomy.role_functions), len(taxonomy.languages),
            len(taxonomy.industries), len(taxonomy.technologies), len(taxonomy.skills),
        )
        return taxonomy
