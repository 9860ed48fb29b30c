#!/usr/bin/env python3
"""Re-enrich stored jobs with the current classification and scoring logic.

Recomputes role function, language requirements, job tags and enrichment
quality for the selected jobs and writes them back. Safe to re-run: jobs
whose fields are already current are left untouched.

Usage:
    python scripts/reenrich_jobs.py                      # all jobs
    python scripts/reenrich_jobs.py --job-id abc123
    python scripts/reenrich_jobs.py --company "Stripe" --provider greenhouse
    python scripts/reenrich_jobs.py --days-back 30 --workers 4 --skip-current

Environment variables:
    DATABASE_URL: SQLAlchemy connection string
    TAXONOMY_FILE: Override for config/taxonomy.yaml
"""
import argparse
import logging
import signal
import sys
from datetime import datetime, timedelta, timezone
from typing import Optional

from dateutil import parser as dateutil_parser

from scripts.bootstrap import EnrichmentContext, build_orchestrator, settings
from src.enrichment.exceptions import TaxonomyError
from src.enrichment.models import EnrichmentSummary, JobSelector
from src.logging_config import setup_logging

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Re-enrich stored job postings")
    parser.add_argument("--job-id", help="Enrich a single job")
    parser.add_argument("--company", help="Only jobs at this company")
    parser.add_argument("--provider", help="Only jobs from this provider/ATS")
    since = parser.add_mutually_exclusive_group()
    since.add_argument("--days-back", type=int, help="Only jobs posted in the last N days")
    since.add_argument("--since", help="Only jobs posted on or after this date (ISO 8601)")
    parser.add_argument("--limit", type=int, help="Maximum number of jobs to enrich")
    parser.add_argument("--workers", type=int, help="Jobs enriched concurrently")
    parser.add_argument(
        "--skip-current",
        action="store_true",
        help="Skip jobs already enriched with the current version",
    )
    parser.add_argument("--log-level", default=settings.log_level)
    return parser.parse_args(argv)


def build_selector(args: argparse.Namespace, now: Optional[datetime] = None) -> JobSelector:
    """Translate CLI arguments into a JobSelector."""
    now = now or datetime.now(timezone.utc)

    posted_since = None
    if args.days_back is not None:
        posted_since = now - timedelta(days=args.days_back)
    elif args.since:
        posted_since = dateutil_parser.isoparse(args.since)

    return JobSelector(
        job_id=args.job_id,
        company=args.company,
        provider=args.provider,
        posted_since=posted_since,
        limit=args.limit,
        skip_current_version=args.skip_current,
    )


def log_summary(summary: EnrichmentSummary) -> None:
    logger.info("=" * 40)
    logger.info("Processed: %d", summary.processed)
    logger.info("Succeeded: %d (%d unchanged, %d skipped)", summary.succeeded, summary.unchanged, summary.skipped)
    logger.info("Failed:    %d", summary.failed)
    for failure in summary.errors[:20]:
        logger.info("  - %s: %s", failure.job_id or "(selection)", failure.error)
    if len(summary.errors) > 20:
        logger.info("  ... and %d more", len(summary.errors) - 20)
    if summary.cancelled:
        logger.info("Run was cancelled before completion")


def main(argv: Optional[list[str]] = None) -> int:
    args = parse_args(argv)
    setup_logging(level=args.log_level, log_file=settings.log_file)

    logger.info("Job Enricher - Re-enrichment")
    logger.info("Database: %s...", settings.database_url[:50])
    logger.info("Taxonomy: %s", settings.taxonomy_path)

    try:
        context = EnrichmentContext.from_settings(settings)
    except TaxonomyError as e:
        logger.error("%s", e)
        return 2

    try:
        orchestrator = build_orchestrator(context, max_workers=args.workers)

        def _handle_sigint(signum, frame):
            logger.warning("Interrupt received, stopping after in-flight jobs...")
            orchestrator.cancel()

        previous_handler = signal.signal(signal.SIGINT, _handle_sigint)
        try:
            summary = orchestrator.run(build_selector(args))
        finally:
            signal.signal(signal.SIGINT, previous_handler)

        log_summary(summary)
        return 1 if summary.errors or summary.cancelled else 0
    finally:
        context.close()


if __name__ == "__main__":
    sys.exit(main())
