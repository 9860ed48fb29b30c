"""SQLAlchemy models for Job Enricher."""
import re
import uuid
from datetime import datetime, timezone


def utcnow() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


def normalize_company_key(name: str) -> str:
    """Normalize company name to a canonical key for fast matching.

    Lowercases, strips whitespace, and removes common suffixes like
    Inc, LLC, Corp, Ltd, Co so that "Stripe, Inc." and "Stripe" match.
    """
    if not name:
        return ""
    key = name.lower().strip()
    key = re.sub(r"[.,;:!]+$", "", key)
    for suffix in (" inc", " llc", " corp", " ltd", " co", " company", " gmbh", " sas"):
        if key.endswith(suffix):
            key = key[: -len(suffix)].rstrip()
    # "Stripe, Inc." -> "stripe," after suffix removal
    key = re.sub(r"[.,;:!]+$", "", key)
    return key


from sqlalchemy import JSON, Column, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase


def generate_uuid() -> str:
    """Generate a UUID string."""
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class Job(Base):
    """Job posting written by ingestion and enriched in place."""

    __tablename__ = "jobs"

    id = Column(String, primary_key=True, default=generate_uuid)
    # Ingestion owns these; title may be missing on malformed imports
    title = Column(String)
    company = Column(String)
    company_key = Column(String, index=True)  # Normalized for fast matching
    location = Column(String)
    description = Column(Text)
    url = Column(String)
    source = Column(String, index=True)  # Provider / ATS: greenhouse, lever, etc.

    # Enrichment (owned by this pipeline)
    role_function = Column(String)
    language_requirements = Column(JSON)  # Sorted list of ISO 639-1 codes
    industries = Column(JSON)  # Sorted tag lists
    technologies = Column(JSON)
    skills = Column(JSON)
    employment_types = Column(JSON)
    work_locations = Column(JSON)
    experience_level = Column(String)
    enrichment_quality = Column(Integer)
    enriched_at = Column(DateTime)  # Compare-and-set guard for concurrent runs
    enriched_version = Column(String)

    # Timestamps
    posted_at = Column(DateTime)
    discovered_at = Column(DateTime, default=utcnow)

    __table_args__ = (Index("ix_jobs_posted_at", "posted_at"),)

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        if self.company and not self.company_key:
            self.company_key = normalize_company_key(self.company)

    def __repr__(self) -> str:
        return f"<Job {self.company} - {self.title}>"


class EnrichmentTask(Base):
    """Audit record for one enrichment run. Never deleted."""

    __tablename__ = "enrichment_tasks"

    STATUSES = ["pending", "running", "completed", "failed"]

    id = Column(String, primary_key=True, default=generate_uuid)
    provider = Column(String)
    company = Column(String)
    job_id = Column(String)
    selector = Column(JSON)  # Full selector, for reruns
    status = Column(String, nullable=False, default="pending")

    processed = Column(Integer, default=0)
    succeeded = Column(Integer, default=0)
    failed_count = Column(Integer, default=0)
    error_message = Column(Text)

    created_at = Column(DateTime, default=utcnow)
    started_at = Column(DateTime)
    finished_at = Column(DateTime)

    def __repr__(self) -> str:
        return f"<EnrichmentTask {self.id} ({self.status})>"
