"""Store protocols for pluggable job and task backends.

Defines the interfaces the enrichment orchestrator depends on.
SqlJobStore and SqlTaskStore are the SQLAlchemy implementations; tests
substitute failing stores through the same interfaces.
"""
from datetime import datetime
from typing import Any, Optional, Protocol, runtime_checkable

from src.enrichment.models import EnrichmentSummary, JobPosting, JobSelector


@runtime_checkable
class JobStore(Protocol):
    """Protocol for job record storage."""

    def get(self, job_id: str) -> JobPosting:
        """Fetch and validate one job.

        Raises JobNotFoundError, RecordMalformedError or StoreUnavailableError.
        """
        ...

    def select_ids(self, selector: JobSelector) -> list[str]:
        """Return ids of the jobs a selector matches, newest first."""
        ...

    def merge_update(
        self,
        job_id: str,
        fields: dict[str, Any],
        expected_enriched_at: Optional[datetime],
    ) -> None:
        """Apply fields only if enriched_at still equals expected_enriched_at.

        Raises EnrichmentConflictError when the guard fails.
        """
        ...


@runtime_checkable
class TaskStore(Protocol):
    """Protocol for enrichment run bookkeeping."""

    def create(self, selector: JobSelector) -> str:
        """Create a pending task and return its id."""
        ...

    def mark_running(self, task_id: str) -> None:
        ...

    def mark_finished(
        self,
        task_id: str,
        summary: EnrichmentSummary,
        error_message: Optional[str] = None,
    ) -> None:
        """Move a task to completed, or failed when error_message is set."""
        ...
