"""Main entry point for the Job Enricher scheduler.

Re-enriches recently posted jobs on a fixed interval so newly ingested
postings pick up role function, languages, tags and quality without a
manual run.
"""
import asyncio
import logging
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from config.settings import settings
from src.enrichment.models import EnrichmentSummary, JobSelector
from src.logging_config import setup_logging
from src.pipeline.enricher import EnrichmentContext, run_enrichment

logger = logging.getLogger(__name__)


def recent_jobs_selector(days_back: int, now: datetime | None = None) -> JobSelector:
    """Selector for jobs posted within the last ``days_back`` days."""
    now = now or datetime.now(timezone.utc)
    return JobSelector(posted_since=now - timedelta(days=days_back))


async def run_scheduled_enrichment(context: EnrichmentContext) -> EnrichmentSummary | None:
    """Run one enrichment cycle over recent jobs.

    The orchestrator is synchronous (SQLAlchemy sessions), so it runs in a
    worker thread to keep the event loop responsive.
    """
    selector = recent_jobs_selector(context.settings.enrichment_days_back)
    logger.info("=" * 60)
    logger.info("Starting scheduled enrichment at %s", datetime.now().strftime("%Y-%m-%d %H:%M:%S"))
    logger.info("=" * 60)

    try:
        summary = await asyncio.to_thread(run_enrichment, context, selector)
    except Exception as e:
        logger.error("Scheduled enrichment failed: %s", e, exc_info=True)
        return None

    if summary.failed:
        logger.warning("%d jobs failed enrichment this cycle", summary.failed)
    return summary


async def async_main():
    """Async main entry point."""
    setup_logging(level=settings.log_level, log_file=settings.log_file or "logs/enricher.log")
    logger.info("Job Enricher Starting...")
    logger.info("Database: %s", settings.database_url)
    logger.info("Taxonomy: %s", settings.taxonomy_path)

    context = EnrichmentContext.from_settings(settings)
    logger.info("Database initialized")

    scheduler = AsyncIOScheduler()
    scheduler.add_job(
        run_scheduled_enrichment,
        IntervalTrigger(minutes=settings.enrichment_interval_minutes),
        args=[context],
        id="job_enrichment",
        name="Job Enrichment",
        max_instances=1,
    )

    scheduler.start()
    logger.info("Scheduler started:")
    logger.info(
        "  - Enrichment of jobs from the last %d days every %d minutes",
        settings.enrichment_days_back, settings.enrichment_interval_minutes,
    )
    logger.info("Running initial enrichment...")

    try:
        await run_scheduled_enrichment(context)

        logger.info("Job Enricher running. Press Ctrl+C to stop.")

        while True:
            await asyncio.sleep(60)

    except asyncio.CancelledError:
        logger.info("Shutting down...")
    finally:
        scheduler.shutdown()
        context.close()


def main():
    """Main entry point."""
    try:
        asyncio.run(async_main())
    except KeyboardInterrupt:
        logger.info("Shutdown complete.")


if __name__ == "__main__":
    main()
