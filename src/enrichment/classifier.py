"""Field classification for job postings - role function, languages and tags."""
from typing import Optional

from src.enrichment.models import Classification
from src.enrichment.taxonomy import HYBRID, ON_SITE, OTHER, REMOTE, Taxonomy
from src.enrichment.text import strip_markup


def _any(patterns, text: str) -> bool:
    return any(p.search(text) for p in patterns)


class FieldClassifier:
    """Derive categorical fields from a job's title and description."""

    def __init__(self, taxonomy: Taxonomy):
        """
        Initialize classifier.

        Args:
            taxonomy: Compiled role-function, language and tag tables
        """
        self.taxonomy = taxonomy

    def classify(
        self,
        title: Optional[str],
        description: Optional[str],
        company: Optional[str] = None,
        location: Optional[str] = None,
    ) -> Classification:
        """
        Classify a job from its free text.

        Never raises for empty or missing input; unmatched jobs fall back
        to ``other`` with no language requirements and default tags.

        Args:
            title: Job title
            description: Job description, plain text or HTML
            company: Company name, used for industry tags
            location: Location field, used for work-location tags

        Returns:
            Classification with role function, language codes and tags
        """
        title = (title or "").strip()
        description = strip_markup(description)
        company = (company or "").strip()
        location = (location or "").strip()
        text = f"{title} {description}"

        experience_level = self.extract_experience_level(title, description)
        return Classification(
            role_function=self.extract_role_function(title, description),
            language_requirements=self.extract_languages(title, description),
            industries=self._tags(self.taxonomy.industries, f"{text} {company}"),
            technologies=self._tags(self.taxonomy.technologies, text),
            skills=self._tags(self.taxonomy.skills, text),
            employment_types=self.extract_employment_types(title, description, experience_level),
            work_locations=self.extract_work_locations(title, description, location),
            experience_level=experience_level,
        )

    def extract_role_function(self, title: str, description: str) -> str:
        """Pick a role function.

        The title is authoritative: every category's title keywords are
        tried in priority order before any description keyword, so "Sales
        Engineer" stays in sales even when the description talks about
        software development. Description keywords are then tried in the
        taxonomy's fallback order, skipping a category whose title excludes
        match.
        """
        for rf in self.taxonomy.role_functions:
            if _any(rf.title_patterns, title):
                return rf.name

        text = f"{title} {description}"
        for rf in self.taxonomy.description_fallbacks:
            if _any(rf.title_exclude_patterns, title):
                continue
            if _any(rf.description_patterns, text):
                return rf.name

        return OTHER

    def extract_languages(self, title: str, description: str) -> frozenset[str]:
        """Return the codes of every spoken language mentioned in the text."""
        text = f"{title} {description}"
        codes: set[str] = set()
        for alias in self.taxonomy.languages:
            if alias.codes <= codes:
                continue
            if alias.pattern.search(text):
                codes |= alias.codes
        return frozenset(codes)

    def extract_experience_level(self, title: str, description: str) -> str:
        """Return the most senior level whose rules match, or the default."""
        text = f"{title} {description}"
        for level in self.taxonomy.experience_levels:
            if level.matches(title, text):
                return level.name
        return self.taxonomy.default_experience_level

    def extract_employment_types(
        self, title: str, description: str, experience_level: Optional[str] = None
    ) -> frozenset[str]:
        text = f"{title} {description}"
        types = set()
        for et in self.taxonomy.employment_types:
            if not _any(et.patterns, text):
                continue
            if _any(et.title_exclude_patterns, title):
                continue
            if experience_level in et.level_excludes:
                continue
            types.add(et.name)
        return frozenset(types or {self.taxonomy.default_employment_type})

    def extract_work_locations(self, title: str, description: str, location: str = "") -> frozenset[str]:
        """Return remote, hybrid and/or on-site; never empty."""
        rules = self.taxonomy.work_locations
        text = f"{title} {description} {location}"
        found = set()

        if _any(rules.remote, text):
            found.add(REMOTE)
        if _any(rules.hybrid, text) or (REMOTE in found and _any(rules.office, text)):
            found.add(HYBRID)
        if _any(rules.on_site, text) or (not found and location):
            found.add(ON_SITE)

        return frozenset(found or {ON_SITE})

    @staticmethod
    def _tags(tags, text: str) -> frozenset[str]:
        return frozenset(tag.name for tag in tags if _any(tag.patterns, text))
