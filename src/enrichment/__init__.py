"""Job enrichment: classification, quality scoring and batch orchestration."""
from .classifier import FieldClassifier
from .models import Classification, EnrichmentSummary, JobPosting, JobSelector
from .orchestrator import EnrichmentOrchestrator
from .scorer import QualityScorer
from .taxonomy import Taxonomy

__all__ = [
    "Classification",
    "EnrichmentOrchestrator",
    "EnrichmentSummary",
    "FieldClassifier",
    "JobPosting",
    "JobSelector",
    "QualityScorer",
    "Taxonomy",
]
