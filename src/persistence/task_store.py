"""Enrichment run bookkeeping."""
import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from src.enrichment.exceptions import StoreUnavailableError
from src.enrichment.models import EnrichmentSummary, JobSelector
from src.persistence.database import Database
from src.persistence.models import EnrichmentTask, utcnow

logger = logging.getLogger(__name__)


def selector_to_json(selector: JobSelector) -> dict:
    """Serialize a selector for the task audit trail."""
    return {
        "job_id": selector.job_id,
        "company": selector.company,
        "provider": selector.provider,
        "posted_since": selector.posted_since.isoformat() if selector.posted_since else None,
        "limit": selector.limit,
        "skip_current_version": selector.skip_current_version,
    }


class SqlTaskStore:
    """Stores EnrichmentTask rows: pending -> running -> completed | failed."""

    def __init__(self, database: Database):
        self.database = database

    def create(self, selector: JobSelector) -> str:
        task = EnrichmentTask(
            provider=selector.provider,
            company=selector.company,
            job_id=selector.job_id,
            selector=selector_to_json(selector),
            status="pending",
        )
        try:
            with self.database.session() as session:
                session.add(task)
                session.flush()
                return task.id
        except SQLAlchemyError as e:
            raise StoreUnavailableError("task create", e) from e

    def mark_running(self, task_id: str) -> None:
        try:
            with self.database.session() as session:
                task = session.get(EnrichmentTask, task_id)
                if task is None:
                    logger.warning("Enrichment task %s disappeared", task_id)
                    return
                task.status = "running"
                task.started_at = utcnow()
        except SQLAlchemyError as e:
            raise StoreUnavailableError("task update", e) from e

    def mark_finished(
        self,
        task_id: str,
        summary: EnrichmentSummary,
        error_message: Optional[str] = None,
    ) -> None:
        try:
            with self.database.session() as session:
                task = session.get(EnrichmentTask, task_id)
                if task is None:
                    logger.warning("Enrichment task %s disappeared", task_id)
                    return
                task.status = "failed" if error_message else "completed"
                task.processed = summary.processed
                task.succeeded = summary.succeeded
                task.failed_count = summary.failed
                task.error_message = error_message
                task.finished_at = utcnow()
        except SQLAlchemyError as e:
            raise StoreUnavailableError("task update", e) from e

    def get(self, task_id: str) -> Optional[EnrichmentTask]:
        """Fetch a task (detached) for inspection."""
        try:
            with self.database.session() as session:
                task = session.get(EnrichmentTask, task_id)
                if task is not None:
                    session.expunge(task)
                return task
        except SQLAlchemyError as e:
            raise StoreUnavailableError("task get", e) from e
