"""Pytest fixtures for Job Enricher tests."""
import sys
from datetime import datetime
from pathlib import Path

import pytest

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from src.enrichment.classifier import FieldClassifier
from src.enrichment.models import JobPosting
from src.enrichment.scorer import QualityScorer
from src.enrichment.taxonomy import Taxonomy
from src.persistence.database import Database
from src.persistence.job_store import ENRICHMENT_FIELDS, SqlJobStore
from src.persistence.models import Job
from src.persistence.task_store import SqlTaskStore

TAXONOMY_PATH = project_root / "config" / "taxonomy.yaml"

LONG_DESCRIPTION = (
    "<p>We are hiring a backend engineer to design, build and operate the services "
    "behind our payment platform. You will write Python and Go, own production "
    "systems end to end, review code and work in an agile team alongside product "
    "and design. Strong communication skills and fluency in German are required "
    "for this role.</p>"
)


# =============================================================================
# TAXONOMY / PURE COMPONENT FIXTURES
# =============================================================================


@pytest.fixture(scope="session")
def taxonomy():
    """The shipped taxonomy, loaded once."""
    return Taxonomy.load(TAXONOMY_PATH)


@pytest.fixture
def classifier(taxonomy):
    return FieldClassifier(taxonomy)


@pytest.fixture
def scorer():
    return QualityScorer()


@pytest.fixture
def full_posting():
    """A fully populated, already-classified posting."""
    return JobPosting(
        id="job-full",
        title="Senior Backend Engineer",
        description=LONG_DESCRIPTION,
        company="Stripe",
        location="Berlin, Germany",
        provider="greenhouse",
        role_function="engineering",
        language_requirements=frozenset({"de"}),
        industries=frozenset({"tech", "finance"}),
        technologies=frozenset({"python", "go"}),
        skills=frozenset({"agile", "communication"}),
        employment_types=frozenset({"full-time"}),
        work_locations=frozenset({"on-site"}),
        experience_level="senior",
    )


# =============================================================================
# DATABASE FIXTURES
# =============================================================================


@pytest.fixture(scope="function")
def database(tmp_path):
    """Create a fresh SQLite database file for each test.

    A file (rather than :memory:) lets every store call open its own
    connection, including from worker threads.
    """
    db = Database(f"sqlite:///{tmp_path / 'test.db'}")
    db.init_db()
    yield db
    db.dispose()


@pytest.fixture
def job_store(database):
    return SqlJobStore(database)


@pytest.fixture
def task_store(database):
    return SqlTaskStore(database)


@pytest.fixture
def job_factory(database):
    """
    Factory fixture to insert jobs.

    Usage:
        job_factory("job-1", title="Backend Engineer", company="Stripe")
    """

    def _create_job(job_id: str, **fields):
        defaults = {
            "title": "Software Engineer",
            "company": "Acme",
            "location": "Remote",
            "description": LONG_DESCRIPTION,
            "source": "greenhouse",
            "url": f"https://example.com/jobs/{job_id}",
            "posted_at": datetime(2026, 1, 15),
        }
        defaults.update(fields)
        with database.session() as session:
            session.add(Job(id=job_id, **defaults))
        return job_id

    return _create_job


@pytest.fixture
def load_job(database):
    """Read a Job row back as a plain dict of its enrichment columns."""

    def _load(job_id: str) -> dict:
        with database.session() as session:
            job = session.get(Job, job_id)
            return {name: getattr(job, name) for name in sorted(ENRICHMENT_FIELDS)}

    return _load
