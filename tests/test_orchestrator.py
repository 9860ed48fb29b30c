"""Tests for the enrichment orchestrator."""
from datetime import datetime

import pytest
from sqlalchemy import text

from src.enrichment.exceptions import StoreUnavailableError
from src.enrichment.models import JobSelector
from src.enrichment.orchestrator import EnrichmentOrchestrator
from src.persistence.job_store import SqlJobStore

FIXED_NOW = datetime(2026, 3, 1, 9, 30, 0)


@pytest.fixture
def make_orchestrator(job_store, classifier, scorer, task_store):
    """Build an orchestrator; any component can be overridden."""

    def _make(**overrides):
        kwargs = {
            "store": job_store,
            "classifier": classifier,
            "scorer": scorer,
            "task_store": task_store,
            "clock": lambda: FIXED_NOW,
        }
        kwargs.update(overrides)
        return EnrichmentOrchestrator(**kwargs)

    return _make


class FlakyStore(SqlJobStore):
    """Job store that fails reads for selected ids."""

    def __init__(self, database, failing_ids):
        super().__init__(database)
        self.failing_ids = set(failing_ids)

    def get(self, job_id):
        if job_id in self.failing_ids:
            raise StoreUnavailableError("get", ConnectionError("connection reset"))
        return super().get(job_id)


class RacingStore(SqlJobStore):
    """Job store where another run enriches the job right after we read it."""

    def get(self, job_id):
        job = super().get(job_id)
        super().merge_update(
            job_id,
            {"enriched_at": datetime(2026, 2, 28), "enriched_version": "other-run"},
            expected_enriched_at=job.enriched_at,
        )
        return job


class UnreachableStore(SqlJobStore):
    """Job store that cannot even run the selection query."""

    def select_ids(self, selector):
        raise StoreUnavailableError("select", ConnectionError("no route to host"))


class ExplodingStore(SqlJobStore):
    """Job store whose reads fail with an error outside the enrichment hierarchy."""

    def __init__(self, database, failing_ids):
        super().__init__(database)
        self.failing_ids = set(failing_ids)

    def get(self, job_id):
        if job_id in self.failing_ids:
            raise RuntimeError("driver returned garbage")
        return super().get(job_id)


class TestEnrichOne:
    """Tests for single-job enrichment."""

    def test_example_engineer(self, make_orchestrator, job_factory, load_job):
        job_factory(
            "j1",
            title="Senior Software Engineer",
            description="Must speak English and German",
            company="Acme",
            location="Remote",
        )
        result = make_orchestrator().enrich_one("j1")

        assert result.status == "updated"
        row = load_job("j1")
        assert row["role_function"] == "engineering"
        assert row["language_requirements"] == ["de", "en"]
        # title 15 + role 20 + languages 10 + company 5 + location 10 + industries 5;
        # description too short, no technologies or skills
        assert row["enrichment_quality"] == 65
        assert row["industries"] == ["tech"]
        assert row["technologies"] == []
        assert row["work_locations"] == ["remote"]
        assert row["employment_types"] == ["full-time"]
        assert row["experience_level"] == "senior"
        assert row["enriched_at"] == FIXED_NOW
        assert row["enriched_version"] == "4.0"

    def test_empty_description_scores_lower(self, make_orchestrator, job_factory, load_job):
        job_factory("full")
        job_factory("sparse", title="Office Hero", description="", location=None, company=None)
        orchestrator = make_orchestrator()
        orchestrator.enrich_one("full")
        orchestrator.enrich_one("sparse")

        sparse = load_job("sparse")
        assert sparse["role_function"] == "other"
        assert sparse["language_requirements"] == []
        assert sparse["enrichment_quality"] < load_job("full")["enrichment_quality"]

    def test_quality_recomputed_with_fields(self, make_orchestrator, job_factory, load_job):
        """Stale enrichment from an older version is fully replaced."""
        job_factory(
            "j1",
            title="Backend Engineer",
            role_function="sales",
            language_requirements=["fr"],
            enrichment_quality=100,
            enriched_version="2.2",
            enriched_at=datetime(2025, 1, 1),
        )
        orchestrator = make_orchestrator()
        result = orchestrator.enrich_one("j1")

        row = load_job("j1")
        assert result.status == "updated"
        assert row["role_function"] == "engineering"
        assert row["language_requirements"] == ["de"]
        assert row["enrichment_quality"] == 100
        assert row["enrichment_quality"] == orchestrator.scorer.score(orchestrator.store.get("j1"))
        assert row["enriched_version"] == "4.0"
        assert row["enriched_at"] == FIXED_NOW

    def test_unchanged_job_not_written(self, make_orchestrator, job_factory, load_job):
        job_factory("j1")
        make_orchestrator().enrich_one("j1")
        before = load_job("j1")

        result = make_orchestrator(clock=lambda: datetime(2027, 1, 1)).enrich_one("j1")

        assert result.status == "unchanged"
        assert load_job("j1") == before

    def test_enrich_posting_is_pure(self, make_orchestrator, full_posting):
        orchestrator = make_orchestrator()
        stripped = full_posting.model_copy(update={"role_function": None, "language_requirements": frozenset()})
        enriched = orchestrator.enrich_posting(stripped)

        assert enriched.role_function == "engineering"
        assert enriched.language_requirements == frozenset({"de"})
        assert enriched.enrichment_quality == 100
        assert stripped.role_function is None

    def test_invalid_worker_count(self, make_orchestrator):
        with pytest.raises(ValueError):
            make_orchestrator(max_workers=0)


class TestRun:
    """Tests for batch runs."""

    def test_idempotent(self, make_orchestrator, job_factory, load_job):
        """A second run over unchanged jobs leaves every record identical."""
        for i in range(3):
            job_factory(f"j{i}")
        orchestrator = make_orchestrator()

        first = orchestrator.run()
        after_first = {f"j{i}": load_job(f"j{i}") for i in range(3)}

        later = datetime(2026, 4, 1)
        second = make_orchestrator(clock=lambda: later).run()
        after_second = {f"j{i}": load_job(f"j{i}") for i in range(3)}

        assert first.succeeded == 3 and first.unchanged == 0
        assert second.succeeded == 3 and second.unchanged == 3
        assert after_first == after_second

    def test_partial_failure(self, make_orchestrator, job_factory):
        """A malformed job is recorded and the rest of the batch still runs."""
        for i in range(1, 6):
            job_factory(f"j{i}", title=None if i == 3 else "Software Engineer")

        summary = make_orchestrator().run()

        assert summary.processed == 5
        assert summary.succeeded == 4
        assert summary.failed == 1
        assert summary.failed_ids == ["j3"]
        assert "title" in summary.errors[0].error

    def test_store_unavailable_for_one_job(self, make_orchestrator, database, job_factory, load_job):
        for i in range(1, 4):
            job_factory(f"j{i}")
        store = FlakyStore(database, failing_ids={"j2"})

        summary = make_orchestrator(store=store).run()

        assert summary.failed_ids == ["j2"]
        assert "unavailable" in summary.errors[0].error
        assert load_job("j1")["role_function"] == "engineering"
        assert load_job("j3")["role_function"] == "engineering"

    def test_concurrent_enrichment_conflict(self, make_orchestrator, database, job_factory, load_job):
        """Losing the compare-and-set guard is a per-job failure, not an overwrite."""
        job_factory("j1")
        summary = make_orchestrator(store=RacingStore(database)).run()

        assert summary.failed_ids == ["j1"]
        assert "concurrently" in summary.errors[0].error
        assert load_job("j1")["enriched_version"] == "other-run"

    def test_missing_job_selected_by_id(self, make_orchestrator):
        summary = make_orchestrator().run(JobSelector(job_id="ghost"))
        assert summary.processed == 1
        assert summary.failed_ids == ["ghost"]

    def test_selection_failure_returns_summary(self, make_orchestrator, database, task_store):
        summary = make_orchestrator(store=UnreachableStore(database)).run()

        assert summary.processed == 0
        assert summary.failed_ids == [None]
        task = task_store.get(summary.task_id)
        assert task.status == "failed"
        assert "selection failed" in task.error_message

    def test_selector_limits_scope(self, make_orchestrator, job_factory, load_job):
        job_factory("a", company="Stripe")
        job_factory("b", company="Block")

        summary = make_orchestrator().run(JobSelector(company="Stripe"))

        assert summary.processed == 1
        assert load_job("a")["enriched_version"] == "4.0"
        assert load_job("b")["enriched_version"] is None

    def test_skip_current_version(self, make_orchestrator, job_factory):
        job_factory("a")
        job_factory("b")
        make_orchestrator().run(JobSelector(job_id="a"))

        summary = make_orchestrator().run(JobSelector(skip_current_version=True))

        assert summary.succeeded == 2
        assert summary.skipped == 1

    def test_task_recorded(self, make_orchestrator, job_factory, task_store):
        job_factory("a")
        job_factory("b", title="")

        summary = make_orchestrator().run(JobSelector(provider="greenhouse"))
        task = task_store.get(summary.task_id)

        assert task.status == "completed"
        assert task.provider == "greenhouse"
        assert (task.processed, task.succeeded, task.failed_count) == (2, 1, 1)
        assert task.started_at is not None and task.finished_at is not None

    def test_runs_without_task_store(self, make_orchestrator, job_factory):
        job_factory("a")
        summary = make_orchestrator(task_store=None).run()
        assert summary.task_id is None
        assert summary.succeeded == 1

    def test_empty_selection(self, make_orchestrator):
        summary = make_orchestrator().run()
        assert summary.processed == 0
        assert summary.errors == []

    def test_corrupt_stored_values_are_item_failures(self, make_orchestrator, database, job_factory, load_job):
        """Unreadable JSON or timestamps fail only their own job."""
        for i in range(1, 5):
            job_factory(f"j{i}")
        with database.session() as session:
            session.execute(text("UPDATE jobs SET language_requirements = '{not json' WHERE id = 'j2'"))
            session.execute(text("UPDATE jobs SET posted_at = 'yesterday' WHERE id = 'j3'"))

        summary = make_orchestrator().run()

        assert summary.processed == 4
        assert summary.succeeded == 2
        assert sorted(summary.failed_ids) == ["j2", "j3"]
        assert all("Malformed job record" in f.error for f in summary.errors)
        assert load_job("j1")["enriched_version"] == "4.0"
        assert load_job("j4")["enriched_version"] == "4.0"

    def test_unexpected_error_is_item_failure(self, make_orchestrator, database, job_factory, task_store):
        for i in range(1, 4):
            job_factory(f"j{i}")
        store = ExplodingStore(database, failing_ids={"j2"})

        summary = make_orchestrator(store=store).run()

        assert summary.processed == 3
        assert summary.succeeded == 2
        assert summary.failed_ids == ["j2"]
        assert "driver returned garbage" in summary.errors[0].error
        assert task_store.get(summary.task_id).status == "completed"

    def test_unexpected_error_in_pool(self, make_orchestrator, database, job_factory):
        for i in range(6):
            job_factory(f"j{i}")
        store = ExplodingStore(database, failing_ids={"j1", "j4"})

        summary = make_orchestrator(store=store, max_workers=3).run()

        assert summary.processed == 6
        assert summary.failed_ids == ["j1", "j4"]


class TestCancellation:
    """Tests for cooperative cancellation."""

    def test_stops_after_current_job(self, make_orchestrator, database, job_factory, task_store, load_job):
        for i in range(1, 6):
            job_factory(f"j{i}")

        class CancellingStore(SqlJobStore):
            orchestrator = None

            def get(self, job_id):
                if job_id == "j2":
                    self.orchestrator.cancel()
                return super().get(job_id)

        store = CancellingStore(database)
        orchestrator = make_orchestrator(store=store)
        store.orchestrator = orchestrator

        summary = orchestrator.run()

        assert summary.cancelled is True
        assert summary.processed == 2
        assert load_job("j2")["enriched_version"] == "4.0"
        assert load_job("j3")["enriched_version"] is None
        assert task_store.get(summary.task_id).status == "failed"

    def test_cancel_before_run_applies_to_that_run(self, make_orchestrator, job_factory, load_job, task_store):
        for i in range(1, 4):
            job_factory(f"j{i}")
        orchestrator = make_orchestrator()

        orchestrator.cancel()
        summary = orchestrator.run()

        assert summary.cancelled is True
        assert summary.processed == 0
        assert load_job("j1")["enriched_version"] is None
        assert "cancelled after 0 of 3" in task_store.get(summary.task_id).error_message
        assert orchestrator.cancelled is False

    def test_next_run_starts_fresh(self, make_orchestrator, job_factory):
        for i in range(1, 4):
            job_factory(f"j{i}")
        orchestrator = make_orchestrator(max_workers=2)

        orchestrator.cancel()
        assert orchestrator.run().cancelled is True

        summary = orchestrator.run()
        assert summary.cancelled is False
        assert summary.succeeded == 3


class TestBoundedPool:
    """Tests for concurrent enrichment."""

    def test_pool_matches_sequential(self, make_orchestrator, job_factory, load_job):
        for i in range(10):
            job_factory(f"j{i:02d}", title=None if i in (3, 7) else "Software Engineer")

        summary = make_orchestrator(max_workers=3).run()

        assert summary.processed == 10
        assert summary.succeeded == 8
        assert summary.failed_ids == ["j03", "j07"]
        assert all(load_job(f"j{i:02d}")["role_function"] == "engineering" for i in (0, 5, 9))

    def test_pool_is_idempotent(self, make_orchestrator, job_factory):
        for i in range(6):
            job_factory(f"j{i}")
        make_orchestrator(max_workers=4).run()
        second = make_orchestrator(max_workers=4).run()
        assert second.unchanged == 6
