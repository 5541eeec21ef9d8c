"""Tests for settlement of completed jobs and the completion sweep."""

from datetime import timedelta
from decimal import Decimal

import pytest

from gigmarket import ConflictError, IntegrityError
from gigmarket.applications.models import Application

POSTER = "poster-1"
STUDENT_A = "student-a"


@pytest.fixture
def filled_job(marketplace, post_job):
    job = post_job(hours=4, pay_offered="480")
    app = marketplace.applications.submit(job.id, STUDENT_A)
    marketplace.applications.accept(app.id, actor=POSTER)
    return marketplace.jobs.get(job.id)


class TestOnJobCompleted:
    def test_completion_creates_entry(self, marketplace, filled_job):
        marketplace.jobs.complete(filled_job.id, actor_id=POSTER)

        entries = marketplace.wallet.entries(STUDENT_A)
        assert len(entries) == 1
        assert entries[0].job_id == filled_job.id
        assert entries[0].amount == Decimal("480")
        assert entries[0].duration_hours == Decimal("4.00")
        assert entries[0].status == "pending"

    def test_settlement_is_idempotent(self, marketplace, filled_job):
        marketplace.jobs.complete(filled_job.id)

        first = marketplace.settlement.on_job_completed(filled_job.id)
        second = marketplace.settlement.on_job_completed(filled_job.id)

        assert first.id == second.id
        assert len(marketplace.wallet.entries(STUDENT_A)) == 1

    def test_settling_an_uncompleted_job(self, marketplace, filled_job):
        with pytest.raises(IntegrityError):
            marketplace.settlement.on_job_completed(filled_job.id)

    def test_no_accepted_application_is_fatal(self, marketplace, filled_job, caplog):
        marketplace.jobs.complete(filled_job.id)
        accepted = marketplace.applications.list_for_job(filled_job.id, status="accepted")[0]
        accepted.status = "rejected"
        accepted.final_pay = None
        marketplace.storage.update_application(accepted)

        with pytest.raises(IntegrityError, match="0 accepted"):
            marketplace.settlement.on_job_completed(filled_job.id)
        assert "CRITICAL" in caplog.text

    def test_two_accepted_applications_is_fatal(self, marketplace, filled_job):
        marketplace.jobs.complete(filled_job.id)
        rogue = Application(
            id="rogue",
            job_id=filled_job.id,
            student_id="student-z",
            original_pay=Decimal("480"),
            status="accepted",
            final_pay=Decimal("480"),
        )
        marketplace.storage.save_application(rogue)

        with pytest.raises(IntegrityError, match="2 accepted"):
            marketplace.settlement.on_job_completed(filled_job.id)

    def test_settle_payment(self, marketplace, filled_job):
        marketplace.jobs.complete(filled_job.id)
        entry = marketplace.wallet.entries(STUDENT_A)[0]

        paid = marketplace.settlement.settle_payment(entry.id, "2024-03-01")

        assert paid.status == "paid"
        assert paid.payment_date.isoformat() == "2024-03-01"


class TestCompletionSweep:
    def test_nothing_due_before_end_time(self, marketplace, filled_job):
        result = marketplace.settlement.complete_due_jobs()

        assert result.due == []
        assert result.completed == []

    def test_dry_run(self, marketplace, filled_job, clock):
        clock.advance(timedelta(days=2))

        result = marketplace.settlement.complete_due_jobs(dry_run=True)

        assert result.dry_run is True
        assert result.due == [filled_job.id]
        assert result.completed == []
        assert marketplace.jobs.get(filled_job.id).status == "filled"

    def test_sweep_completes_and_settles(self, marketplace, filled_job, clock):
        clock.advance(timedelta(days=2))

        result = marketplace.settlement.complete_due_jobs()

        assert result.completed == [filled_job.id]
        entry = marketplace.wallet.entries(STUDENT_A)[0]
        assert result.entries == [entry.id]
        job = marketplace.jobs.get(filled_job.id)
        assert job.status == "completed"
        assert job.completed_at == clock.now()
        assert marketplace.jobs.history(job.id)[-1].actor_id is None

    def test_sweep_uses_explicit_now(self, marketplace, filled_job):
        result = marketplace.settlement.complete_due_jobs(now=filled_job.end_time)
        assert result.completed == [filled_job.id]

    @pytest.mark.parametrize("backend", ["marketplace", "sqlite_marketplace"])
    def test_naive_now_is_treated_as_utc(self, request, make_draft, backend):
        mp = request.getfixturevalue(backend)
        job = mp.jobs.post(make_draft(hours=2))
        app = mp.applications.submit(job.id, STUDENT_A)
        mp.applications.accept(app.id, actor=POSTER)
        naive_end = job.end_time.replace(tzinfo=None)

        assert mp.jobs.due_for_completion(naive_end - timedelta(minutes=1)) == []
        result = mp.settlement.complete_due_jobs(now=naive_end + timedelta(minutes=1))

        assert result.completed == [job.id]

    def test_lost_race_is_reported_not_raised(self, marketplace, filled_job, clock, monkeypatch):
        clock.advance(timedelta(days=2))

        def raced(job_id, actor_id=None):
            raise ConflictError("changed underneath", entity_id=job_id)

        monkeypatch.setattr(marketplace.jobs, "complete", raced)

        result = marketplace.settlement.complete_due_jobs()

        assert result.failed == [filled_job.id]
        assert result.completed == []

    def test_integrity_errors_stop_the_sweep(self, marketplace, filled_job, clock):
        clock.advance(timedelta(days=2))
        accepted = marketplace.applications.list_for_job(filled_job.id, status="accepted")[0]
        accepted.status = "rejected"
        accepted.final_pay = None
        marketplace.storage.update_application(accepted)

        with pytest.raises(IntegrityError):
            marketplace.settlement.complete_due_jobs()

    def test_result_to_dict(self, marketplace, filled_job, clock):
        clock.advance(timedelta(days=2))

        data = marketplace.settlement.complete_due_jobs().to_dict()

        assert set(data) == {"dry_run", "due", "completed", "failed", "entries"}
