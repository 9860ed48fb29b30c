"""Wiring for the enrichment pipeline.

Entry points (CLI, scheduler) build one EnrichmentContext from settings and
own its lifecycle; everything below receives it explicitly.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from config.settings import Settings
from src.enrichment.classifier import FieldClassifier
from src.enrichment.models import EnrichmentSummary, JobSelector
from src.enrichment.orchestrator import EnrichmentOrchestrator
from src.enrichment.scorer import QualityScorer
from src.enrichment.taxonomy import Taxonomy
from src.persistence.database import Database
from src.persistence.job_store import SqlJobStore
from src.persistence.task_store import SqlTaskStore

logger = logging.getLogger(__name__)


@dataclass
class EnrichmentContext:
    """Everything a run needs: configuration, database and taxonomy."""

    settings: Settings
    database: Database
    taxonomy: Taxonomy

    @classmethod
    def from_settings(cls, settings: Settings, init_db: bool = True) -> "EnrichmentContext":
        """Open the database and load the taxonomy described by settings."""
        database = Database(settings.database_url)
        if init_db:
            database.init_db()
        taxonomy = Taxonomy.load(settings.taxonomy_path)
        return cls(settings=settings, database=database, taxonomy=taxonomy)

    def close(self) -> None:
        self.database.dispose()


def build_orchestrator(
    context: EnrichmentContext,
    max_workers: Optional[int] = None,
) -> EnrichmentOrchestrator:
    """Factory: create an orchestrator wired to the context's stores.

    Args:
        context: Enrichment context
        max_workers: Override for settings.enrichment_workers

    Returns:
        A ready-to-run EnrichmentOrchestrator
    """
    settings = context.settings
    scorer = QualityScorer(
        weights=settings.quality_weights,
        min_description_length=settings.min_description_length,
        taxonomy=context.taxonomy,
    )
    return EnrichmentOrchestrator(
        store=SqlJobStore(context.database),
        classifier=FieldClassifier(context.taxonomy),
        scorer=scorer,
        task_store=SqlTaskStore(context.database),
        enrichment_version=settings.enrichment_version,
        max_workers=max_workers or settings.enrichment_workers,
        progress_every=settings.progress_every,
    )


def run_enrichment(
    context: EnrichmentContext,
    selector: Optional[JobSelector] = None,
    max_workers: Optional[int] = None,
) -> EnrichmentSummary:
    """Build an orchestrator and run it once."""
    orchestrator = build_orchestrator(context, max_workers=max_workers)
    return orchestrator.run(selector)
