"""Database persistence layer."""
from .database import Database
from .models import Base, EnrichmentTask, Job

__all__ = [
    "Base",
    "Database",
    "EnrichmentTask",
    "Job",
]
