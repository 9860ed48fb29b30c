"""Enrichment quality scoring."""
import logging
from dataclasses import dataclass
from typing import Callable, Optional

from src.enrichment.models import JobPosting
from src.enrichment.taxonomy import OTHER, Taxonomy
from src.enrichment.text import strip_markup

logger = logging.getLogger(__name__)

# Criterion name -> weight. Must sum to 100.
# Work location and experience level always carry a default value, so they
# say nothing about completeness and are not scored.
DEFAULT_WEIGHTS: dict[str, int] = {
    "title": 15,
    "description": 20,
    "role_function": 20,
    "languages": 10,
    "company": 5,
    "location": 10,
    "technologies": 10,
    "industries": 5,
    "skills": 5,
}


@dataclass(frozen=True)
class CriterionResult:
    """One rubric line: whether it was met and what it contributed."""

    name: str
    weight: int
    satisfied: bool

    @property
    def points(self) -> int:
        return self.weight if self.satisfied else 0


class QualityScorer:
    """Score how complete an enriched job record is (0-100).

    Every criterion checks the presence of one piece of information, so
    adding information to a job can only add points.
    """

    def __init__(
        self,
        weights: Optional[dict[str, int]] = None,
        min_description_length: int = 200,
        taxonomy: Optional[Taxonomy] = None,
    ):
        """
        Initialize quality scorer.

        Args:
            weights: Criterion weights; defaults to DEFAULT_WEIGHTS
            min_description_length: Plain-text length a description needs
                to earn its points
            taxonomy: Language tables used to tell whether a job's text
                implies a language requirement. Without one, the languages
                criterion needs at least one detected language.

        Raises:
            ValueError: If the weights name unknown criteria, are negative
                or do not sum to 100.
        """
        self.weights = dict(weights) if weights else dict(DEFAULT_WEIGHTS)
        self.min_description_length = min_description_length
        self.taxonomy = taxonomy
        self._checks: dict[str, Callable[[JobPosting], bool]] = {
            "title": lambda job: bool(job.title.strip()),
            "description": self._has_substantial_description,
            "role_function": lambda job: bool(job.role_function) and job.role_function != OTHER,
            "languages": self._has_language_requirements,
            "company": lambda job: bool(job.company.strip()),
            "location": lambda job: bool(job.location.strip()),
            "technologies": lambda job: len(job.technologies) > 0,
            "industries": lambda job: len(job.industries) > 0,
            "skills": lambda job: len(job.skills) > 0,
        }
        self._validate_weights()

    def _validate_weights(self) -> None:
        unknown = set(self.weights) - set(self._checks)
        if unknown:
            raise ValueError(f"Unknown quality criteria: {sorted(unknown)}")
        if any(w < 0 for w in self.weights.values()):
            raise ValueError("Quality weights must be non-negative")
        total = sum(self.weights.values())
        if total != 100:
            raise ValueError(f"Quality weights must sum to 100, got {total}")

    def _has_substantial_description(self, job: JobPosting) -> bool:
        return len(strip_markup(job.description)) >= self.min_description_length

    def _has_language_requirements(self, job: JobPosting) -> bool:
        if job.language_requirements:
            return True
        if self.taxonomy is None:
            return False
        # Nothing to capture when the text names no language
        text = f"{job.title} {strip_markup(job.description)}"
        return not any(alias.pattern.search(text) for alias in self.taxonomy.languages)

    def breakdown(self, job: JobPosting) -> list[CriterionResult]:
        """Evaluate every weighted criterion against a job."""
        return [
            CriterionResult(name=name, weight=weight, satisfied=self._checks[name](job))
            for name, weight in self.weights.items()
        ]

    def score(self, job: JobPosting) -> int:
        """Return the enrichment quality of a job, 0-100."""
        total = sum(c.points for c in self.breakdown(job))
        return min(100, max(0, total))
