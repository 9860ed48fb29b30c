"""Enrichment exceptions for Job Enricher."""
from typing import Optional


class EnrichmentError(Exception):
    """Base exception for enrichment errors."""

    pass


class TaxonomyError(EnrichmentError):
    """Raised when the taxonomy file is missing or invalid."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Invalid taxonomy: {reason}")


class StoreUnavailableError(EnrichmentError):
    """Raised when the job store cannot be reached. Callers may retry."""

    def __init__(self, operation: str, cause: Optional[Exception] = None):
        self.operation = operation
        self.cause = cause
        detail = f": {cause}" if cause else ""
        super().__init__(f"Job store unavailable during {operation}{detail}")


class RecordMalformedError(EnrichmentError):
    """Raised when a stored job lacks the text fields enrichment needs or holds unreadable values."""

    def __init__(self, job_id: Optional[str], reason: str):
        self.job_id = job_id
        self.reason = reason
        super().__init__(f"Malformed job record {job_id}: {reason}")


class JobNotFoundError(EnrichmentError):
    """Raised when a selected job no longer exists."""

    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(f"Job not found: {job_id}")


class EnrichmentConflictError(EnrichmentError):
    """Raised when another run enriched the job between fetch and write."""

    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(f"Job {job_id} was enriched concurrently; update skipped")
