"""Batch enrichment of stored job postings.

For each selected job: fetch -> classify -> score -> merge-update. A failing
job is recorded and the batch moves on; the summary is always returned so
callers can inspect partial progress.
"""
import logging
import threading
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional

from src.enrichment.classifier import FieldClassifier
from src.enrichment.exceptions import EnrichmentError, StoreUnavailableError
from src.enrichment.models import (
    EnrichmentSummary,
    ItemFailure,
    ItemResult,
    JobPosting,
    JobSelector,
    TAG_FIELDS,
)
from src.enrichment.scorer import QualityScorer
from src.persistence.store_protocol import JobStore, TaskStore

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EnrichmentOrchestrator:
    """Run the classifier and scorer over a set of stored jobs."""

    def __init__(
        self,
        store: JobStore,
        classifier: FieldClassifier,
        scorer: QualityScorer,
        task_store: Optional[TaskStore] = None,
        enrichment_version: str = "4.0",
        max_workers: int = 1,
        progress_every: int = 100,
        clock: Callable[[], datetime] = _utcnow,
    ):
        """
        Initialize orchestrator.

        Args:
            store: Job store to read from and write to
            classifier: Field classifier
            scorer: Quality scorer
            task_store: Optional store for EnrichmentTask audit rows
            enrichment_version: Version stamped on every write
            max_workers: Jobs enriched concurrently (1 = sequential)
            progress_every: Log progress every N jobs
            clock: Source of enriched_at timestamps
        """
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self.store = store
        self.classifier = classifier
        self.scorer = scorer
        self.task_store = task_store
        self.enrichment_version = enrichment_version
        self.max_workers = max_workers
        self.progress_every = max(1, progress_every)
        self.clock = clock
        self._cancel = threading.Event()

    # =========================================================================
    # Single job
    # =========================================================================

    def enrich_posting(self, job: JobPosting) -> JobPosting:
        """Return a copy of a job with enrichment fields recomputed.

        Pure: no store access. Quality is always scored from the freshly
        classified fields so it can never lag behind them.
        """
        classification = self.classifier.classify(
            job.title, job.description, company=job.company, location=job.location
        )
        enriched = job.model_copy(
            update={
                "role_function": classification.role_function,
                "language_requirements": classification.language_requirements,
                "industries": classification.industries,
                "technologies": classification.technologies,
                "skills": classification.skills,
                "employment_types": classification.employment_types,
                "work_locations": classification.work_locations,
                "experience_level": classification.experience_level,
            }
        )
        quality = self.scorer.score(enriched)
        return enriched.model_copy(
            update={
                "enrichment_quality": quality,
                "enriched_version": self.enrichment_version,
            }
        )

    def enrich_one(self, job_id: str, skip_current_version: bool = False) -> ItemResult:
        """
        Enrich a single stored job.

        Args:
            job_id: Job to enrich
            skip_current_version: Leave jobs already at the current version alone

        Returns:
            ItemResult with status updated, unchanged or skipped

        Raises:
            EnrichmentError: Store failures, malformed records, CAS conflicts
        """
        job = self.store.get(job_id)

        if skip_current_version and job.enriched_version == self.enrichment_version:
            return self._result(job, "skipped")

        enriched = self.enrich_posting(job)

        if self._same_enrichment(job, enriched):
            logger.debug("Job %s already up to date", job_id)
            return self._result(job, "unchanged")

        fields = {name: sorted(getattr(enriched, name)) for name in TAG_FIELDS}
        fields.update(
            role_function=enriched.role_function,
            experience_level=enriched.experience_level,
            enrichment_quality=enriched.enrichment_quality,
            enriched_at=self.clock(),
            enriched_version=enriched.enriched_version,
        )
        self.store.merge_update(job_id, fields, expected_enriched_at=job.enriched_at)

        if enriched.language_requirements:
            logger.debug(
                "%s -> %s, languages: %s",
                job.title[:50], enriched.role_function,
                ", ".join(sorted(enriched.language_requirements)),
            )
        return self._result(enriched, "updated")

    @staticmethod
    def _same_enrichment(before: JobPosting, after: JobPosting) -> bool:
        return (
            before.role_function == after.role_function
            and all(getattr(before, name) == getattr(after, name) for name in TAG_FIELDS)
            and before.experience_level == after.experience_level
            and before.enrichment_quality == after.enrichment_quality
            and before.enriched_version == after.enriched_version
        )

    @staticmethod
    def _result(job: JobPosting, status: str) -> ItemResult:
        return ItemResult(
            job_id=job.id,
            status=status,
            role_function=job.role_function,
            language_requirements=job.language_requirements,
            enrichment_quality=job.enrichment_quality,
        )

    # =========================================================================
    # Batch
    # =========================================================================

    def cancel(self) -> None:
        """Stop the current run once in-flight jobs finish."""
        self._cancel.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def run(self, selector: Optional[JobSelector] = None) -> EnrichmentSummary:
        """
        Enrich every job a selector matches.

        A cancel() issued before the run starts applies to it; the request
        is cleared once the run ends, so the next run starts fresh.

        Args:
            selector: Jobs to enrich; defaults to all jobs

        Returns:
            EnrichmentSummary. Never raises for store or record problems.
        """
        selector = selector or JobSelector()
        try:
            return self._run(selector)
        finally:
            self._cancel.clear()

    def _run(self, selector: JobSelector) -> EnrichmentSummary:
        summary = EnrichmentSummary()
        summary.task_id = self._start_task(selector)

        logger.info("Starting enrichment run (v%s) for %s", self.enrichment_version, selector.describe())

        try:
            job_ids = self.store.select_ids(selector)
        except EnrichmentError as e:
            logger.error("Could not select jobs for %s: %s", selector.describe(), e)
            summary.errors.append(ItemFailure(job_id=None, error=str(e)))
            return self._finish(summary, error_message=f"Job selection failed: {e}")

        total = len(job_ids)
        logger.info("Selected %d jobs", total)

        try:
            if self.max_workers == 1:
                self._run_sequential(job_ids, selector, summary, total)
            else:
                self._run_pooled(job_ids, selector, summary, total)
        except Exception as e:
            self._finish(summary, error_message=f"Run aborted: {e}")
            raise

        summary.cancelled = self.cancelled
        error_message = None
        if summary.cancelled:
            error_message = f"Run cancelled after {summary.processed} of {total} jobs"
            logger.warning(error_message)

        logger.info(
            "Enrichment complete: %d processed, %d succeeded (%d unchanged, %d skipped), %d failed",
            summary.processed, summary.succeeded, summary.unchanged, summary.skipped, summary.failed,
        )
        return self._finish(summary, error_message=error_message)

    def _enrich_into(
        self,
        job_id: str,
        selector: JobSelector,
        summary: EnrichmentSummary,
    ) -> None:
        try:
            result = self.enrich_one(job_id, skip_current_version=selector.skip_current_version)
        except EnrichmentError as e:
            logger.warning("Failed to enrich job %s: %s", job_id, e)
            summary.record_failure(job_id, e)
        except Exception as e:
            logger.exception("Unexpected error enriching job %s", job_id)
            summary.record_failure(job_id, e)
        else:
            summary.record_success(result)

    def _log_progress(self, summary: EnrichmentSummary, total: int) -> None:
        if summary.processed % self.progress_every == 0 or summary.processed == total:
            logger.info(
                "Progress: %d/%d processed, %d succeeded, %d failed",
                summary.processed, total, summary.succeeded, summary.failed,
            )

    def _run_sequential(
        self,
        job_ids: Iterable[str],
        selector: JobSelector,
        summary: EnrichmentSummary,
        total: int,
    ) -> None:
        for job_id in job_ids:
            if self.cancelled:
                break
            self._enrich_into(job_id, selector, summary)
            self._log_progress(summary, total)

    def _run_pooled(
        self,
        job_ids: list[str],
        selector: JobSelector,
        summary: EnrichmentSummary,
        total: int,
    ) -> None:
        """Bounded fan-out: never more than max_workers jobs in flight.

        Outcomes are collected per job and folded into the summary in
        selection order, so failures are reported deterministically.
        """
        outcomes: dict[str, EnrichmentSummary] = {}
        pending: set[Future] = set()
        remaining = iter(job_ids)

        def submit_next(pool: ThreadPoolExecutor) -> bool:
            if self.cancelled:
                return False
            job_id = next(remaining, None)
            if job_id is None:
                return False
            outcome = EnrichmentSummary()
            outcomes[job_id] = outcome
            pending.add(pool.submit(self._enrich_into, job_id, selector, outcome))
            return True

        done_count = 0
        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            for _ in range(self.max_workers):
                if not submit_next(pool):
                    break
            while pending:
                done, _ = wait(pending, return_when=FIRST_COMPLETED)
                for future in done:
                    pending.discard(future)
                    future.result()
                    done_count += 1
                    if done_count % self.progress_every == 0:
                        logger.info("Progress: %d/%d processed", done_count, total)
                    submit_next(pool)

        for job_id in job_ids:
            outcome = outcomes.get(job_id)
            if outcome is None:
                continue
            summary.processed += outcome.processed
            summary.succeeded += outcome.succeeded
            summary.failed += outcome.failed
            summary.unchanged += outcome.unchanged
            summary.skipped += outcome.skipped
            summary.errors.extend(outcome.errors)

    # =========================================================================
    # Task bookkeeping
    # =========================================================================

    def _start_task(self, selector: JobSelector) -> Optional[str]:
        if self.task_store is None:
            return None
        try:
            task_id = self.task_store.create(selector)
            self.task_store.mark_running(task_id)
            return task_id
        except StoreUnavailableError as e:
            logger.warning("Could not record enrichment task: %s", e)
            return None

    def _finish(
        self,
        summary: EnrichmentSummary,
        error_message: Optional[str] = None,
    ) -> EnrichmentSummary:
        if self.task_store is not None and summary.task_id is not None:
            try:
                self.task_store.mark_finished(summary.task_id, summary, error_message=error_message)
            except StoreUnavailableError as e:
                logger.warning("Could not update enrichment task %s: %s", summary.task_id, e)
        return summary
