"""Typed records passed between the store, classifier, scorer and orchestrator."""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from src.enrichment.exceptions import RecordMalformedError

# Multi-valued enrichment fields, stored as sorted lists
TAG_FIELDS = (
    "language_requirements",
    "industries",
    "technologies",
    "skills",
    "employment_types",
    "work_locations",
)


class JobPosting(BaseModel):
    """A job record as seen by the enrichment pipeline.

    Validated at the store boundary. Only ``id`` and ``title`` are required;
    every other field degrades to an empty default instead of failing.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str = Field(min_length=1)
    title: str
    description: str = ""
    company: str = ""
    location: str = ""
    provider: str = ""
    role_function: Optional[str] = None
    language_requirements: frozenset[str] = Field(default_factory=frozenset)
    industries: frozenset[str] = Field(default_factory=frozenset)
    technologies: frozenset[str] = Field(default_factory=frozenset)
    skills: frozenset[str] = Field(default_factory=frozenset)
    employment_types: frozenset[str] = Field(default_factory=frozenset)
    work_locations: frozenset[str] = Field(default_factory=frozenset)
    experience_level: Optional[str] = None
    enrichment_quality: Optional[int] = None
    posted_at: Optional[datetime] = None
    enriched_at: Optional[datetime] = None
    enriched_version: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v):
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v

    @field_validator("title", mode="before")
    @classmethod
    def title_required(cls, v):
        if not isinstance(v, str) or not v.strip():
            raise ValueError("title is required")
        return v.strip()

    @field_validator("description", "company", "location", "provider", mode="before")
    @classmethod
    def text_or_empty(cls, v):
        """Missing or non-text values become empty strings."""
        if v is None or not isinstance(v, str):
            return ""
        # Collectors sometimes persist pandas NaN as the literal string "nan"
        if v.strip().lower() == "nan":
            return ""
        return v.strip()

    @field_validator(
        "language_requirements", "industries", "technologies", "skills",
        "employment_types", "work_locations",
        mode="before",
    )
    @classmethod
    def codes_or_empty(cls, v):
        if not isinstance(v, (list, tuple, set, frozenset)):
            return frozenset()
        return frozenset(str(c).strip().lower() for c in v if isinstance(c, str) and c.strip())

    @field_validator("experience_level", mode="before")
    @classmethod
    def level_or_none(cls, v):
        if not isinstance(v, str) or not v.strip():
            return None
        return v.strip().lower()

    @field_validator("enrichment_quality", mode="before")
    @classmethod
    def quality_or_none(cls, v):
        if isinstance(v, bool):
            return None
        if isinstance(v, (int, float)) and 0 <= v <= 100:
            return int(v)
        return None

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "JobPosting":
        """Build a JobPosting from a raw store record.

        Raises:
            RecordMalformedError: If the id or title is missing.
        """
        try:
            return cls.model_validate(dict(record))
        except ValidationError as e:
            reasons = "; ".join(
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
            )
            raise RecordMalformedError(record.get("id"), reasons) from e


@dataclass(frozen=True)
class Classification:
    """Categorical fields derived from job text."""

    role_function: str
    language_requirements: frozenset[str] = frozenset()
    industries: frozenset[str] = frozenset()
    technologies: frozenset[str] = frozenset()
    skills: frozenset[str] = frozenset()
    employment_types: frozenset[str] = frozenset()
    work_locations: frozenset[str] = frozenset()
    experience_level: Optional[str] = None


@dataclass(frozen=True)
class JobSelector:
    """Identifies the subset of jobs a run should enrich.

    An empty selector selects every job. ``job_id`` wins over the other
    filters; ``company`` and ``provider`` may be combined.
    """

    job_id: Optional[str] = None
    company: Optional[str] = None
    provider: Optional[str] = None
    posted_since: Optional[datetime] = None
    limit: Optional[int] = None
    skip_current_version: bool = False

    def describe(self) -> str:
        if self.job_id:
            return f"job {self.job_id}"
        parts = []
        if self.company:
            parts.append(f"company={self.company}")
        if self.provider:
            parts.append(f"provider={self.provider}")
        if self.posted_since:
            parts.append(f"posted_since={self.posted_since.isoformat()}")
        if self.limit:
            parts.append(f"limit={self.limit}")
        return ", ".join(parts) or "all jobs"


@dataclass(frozen=True)
class ItemFailure:
    """A job that could not be enriched, and why."""

    job_id: Optional[str]
    error: str


@dataclass(frozen=True)
class ItemResult:
    """Outcome of enriching a single job."""

    job_id: str
    status: str  # updated, unchanged, skipped
    role_function: Optional[str] = None
    language_requirements: frozenset[str] = frozenset()
    enrichment_quality: Optional[int] = None


@dataclass
class EnrichmentSummary:
    """Aggregate outcome of one orchestrator run."""

    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    unchanged: int = 0
    skipped: int = 0
    errors: list[ItemFailure] = field(default_factory=list)
    cancelled: bool = False
    task_id: Optional[str] = None

    @property
    def failed_ids(self) -> list[Optional[str]]:
        return [f.job_id for f in self.errors]

    def record_success(self, result: ItemResult) -> None:
        self.processed += 1
        self.succeeded += 1
        if result.status == "unchanged":
            self.unchanged += 1
        elif result.status == "skipped":
            self.skipped += 1

    def record_failure(self, job_id: Optional[str], error: Exception) -> None:
        self.processed += 1
        self.failed += 1
        self.errors.append(ItemFailure(job_id=job_id, error=str(error)))
