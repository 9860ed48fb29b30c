"""SQLAlchemy-backed job store."""
import logging
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError

from src.enrichment.exceptions import (
    EnrichmentConflictError,
    JobNotFoundError,
    RecordMalformedError,
    StoreUnavailableError,
)
from src.enrichment.models import TAG_FIELDS, JobPosting, JobSelector
from src.persistence.database import Database
from src.persistence.models import Job, normalize_company_key

logger = logging.getLogger(__name__)

# Fields this pipeline is allowed to write
ENRICHMENT_FIELDS = frozenset(
    {
        "role_function",
        *TAG_FIELDS,
        "experience_level",
        "enrichment_quality",
        "enriched_at",
        "enriched_version",
    }
)


def job_to_record(job: Job) -> dict[str, Any]:
    """Map a Job row to the plain record JobPosting validates."""
    record = {
        "id": job.id,
        "title": job.title,
        "description": job.description,
        "company": job.company,
        "location": job.location,
        "provider": job.source,
        "role_function": job.role_function,
        "experience_level": job.experience_level,
        "enrichment_quality": job.enrichment_quality,
        "posted_at": job.posted_at,
        "enriched_at": job.enriched_at,
        "enriched_version": job.enriched_version,
    }
    for name in TAG_FIELDS:
        record[name] = getattr(job, name)
    return record


class SqlJobStore:
    """Job store over the ``jobs`` table.

    Every call opens its own short-lived session, so one store can be
    shared by the worker threads of a run.
    """

    def __init__(self, database: Database):
        """
        Initialize job store.

        Args:
            database: Database the jobs table lives in
        """
        self.database = database

    def get(self, job_id: str) -> JobPosting:
        """Load one job.

        Raises:
            JobNotFoundError: No job has this id.
            RecordMalformedError: The row holds values that cannot be read
                back, such as invalid JSON or an unparseable timestamp.
            StoreUnavailableError: The database failed.
        """
        try:
            with self.database.session() as session:
                job = session.get(Job, job_id)
                record = job_to_record(job) if job is not None else None
        except SQLAlchemyError as e:
            raise StoreUnavailableError("get", e) from e
        except (ValueError, TypeError) as e:
            # Raised by the JSON and DateTime result processors
            raise RecordMalformedError(job_id, f"unreadable stored value: {e}") from e

        if record is None:
            raise JobNotFoundError(job_id)
        return JobPosting.from_record(record)

    def select_ids(self, selector: JobSelector) -> list[str]:
        if selector.job_id:
            return [selector.job_id]

        stmt = select(Job.id)
        if selector.company:
            stmt = stmt.where(Job.company_key == normalize_company_key(selector.company))
        if selector.provider:
            stmt = stmt.where(func.lower(Job.source) == selector.provider.strip().lower())
        if selector.posted_since:
            stmt = stmt.where(Job.posted_at >= selector.posted_since)
        # Newest first; jobs without a posting date last
        stmt = stmt.order_by(Job.posted_at.is_(None), Job.posted_at.desc(), Job.id)
        if selector.limit:
            stmt = stmt.limit(selector.limit)

        try:
            with self.database.session() as session:
                return list(session.execute(stmt).scalars())
        except SQLAlchemyError as e:
            raise StoreUnavailableError("select", e) from e

    def merge_update(
        self,
        job_id: str,
        fields: dict[str, Any],
        expected_enriched_at: Optional[datetime],
    ) -> None:
        unknown = set(fields) - ENRICHMENT_FIELDS
        if unknown:
            raise ValueError(f"Refusing to write non-enrichment fields: {sorted(unknown)}")

        guard = (
            Job.enriched_at.is_(None)
            if expected_enriched_at is None
            else Job.enriched_at == expected_enriched_at
        )
        stmt = update(Job).where(Job.id == job_id, guard).values(**fields)

        try:
            with self.database.session() as session:
                result = session.execute(stmt)
                if result.rowcount == 1:
                    return
                # Only the id is read back, so a corrupt row cannot fail this check
                exists = session.execute(select(Job.id).where(Job.id == job_id)).first() is not None
        except SQLAlchemyError as e:
            raise StoreUnavailableError("update", e) from e

        if not exists:
            raise JobNotFoundError(job_id)
        raise EnrichmentConflictError(job_id)
