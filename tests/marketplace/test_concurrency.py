"""Concurrent operations on one job must serialize on the job's lock."""

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from gigmarket import ConflictError, InvalidStateError
from gigmarket.locking import KeyedLockManager, LockTimeoutError

POSTER = "poster-1"


def _run_together(fns, workers=8):
    """Start every callable at once and collect (result, error) pairs."""
    barrier = threading.Barrier(len(fns))

    def wrapped(fn):
        barrier.wait()
        try:
            return fn(), None
        except Exception as e:  # collected for assertions
            return None, e

    with ThreadPoolExecutor(max_workers=max(workers, len(fns))) as pool:
        return list(pool.map(wrapped, fns))


class TestConcurrentAccepts:
    @pytest.mark.parametrize("backend", ["marketplace", "sqlite_marketplace"])
    def test_only_one_accept_wins(self, request, make_draft, backend):
        mp = request.getfixturevalue(backend)
        job = mp.jobs.post(make_draft())
        apps = [mp.applications.submit(job.id, f"student-{i}") for i in range(8)]

        outcomes = _run_together(
            [lambda a=a: mp.applications.accept(a.id, actor=POSTER) for a in apps]
        )

        winners = [r for r, e in outcomes if e is None]
        errors = [e for r, e in outcomes if e is not None]
        assert len(winners) == 1
        assert all(isinstance(e, (ConflictError, InvalidStateError)) for e in errors)
        statuses = [mp.applications.get(a.id).status for a in apps]
        assert statuses.count("accepted") == 1
        assert mp.jobs.get(job.id).status == "filled"

    def test_duplicate_submissions_race(self, marketplace, make_draft):
        job = marketplace.jobs.post(make_draft())

        outcomes = _run_together(
            [lambda: marketplace.applications.submit(job.id, "student-a") for _ in range(6)]
        )

        assert sum(1 for _, e in outcomes if e is None) == 1
        assert all(isinstance(e, ConflictError) for _, e in outcomes if e is not None)

    def test_accept_races_cancel(self, marketplace, make_draft):
        job = marketplace.jobs.post(make_draft())
        app = marketplace.applications.submit(job.id, "student-a")

        _run_together(
            [
                lambda: marketplace.applications.accept(app.id, actor=POSTER),
                lambda: marketplace.jobs.cancel(job.id, actor_id=POSTER),
            ]
        )

        final_job = marketplace.jobs.get(job.id)
        final_app = marketplace.applications.get(app.id)
        assert (final_job.status, final_app.status) in {
            ("filled", "accepted"),
            ("cancelled", "rejected"),
        }

    def test_concurrent_settlement_creates_one_entry(self, marketplace, make_draft):
        job = marketplace.jobs.post(make_draft())
        app = marketplace.applications.submit(job.id, "student-a")
        marketplace.applications.accept(app.id, actor=POSTER)
        marketplace.jobs.complete(job.id)

        outcomes = _run_together(
            [lambda: marketplace.settlement.on_job_completed(job.id) for _ in range(6)]
        )

        ids = {entry.id for entry, e in outcomes if e is None}
        assert len(ids) == 1
        assert len(marketplace.wallet.entries("student-a")) == 1


class TestKeyedLockManager:
    def test_reentrant(self):
        locks = KeyedLockManager()
        with locks.hold("job-1"):
            with locks.hold("job-1"):
                assert locks.active_keys() == 1
        assert locks.active_keys() == 0

    def test_keys_are_independent(self):
        locks = KeyedLockManager(timeout=0.5)
        acquired = threading.Event()

        with locks.hold("job-1"):
            def other():
                with locks.hold("job-2"):
                    acquired.set()

            t = threading.Thread(target=other)
            t.start()
            t.join(timeout=2)

        assert acquired.is_set()

    def test_timeout(self):
        locks = KeyedLockManager(timeout=0.05)
        holding = threading.Event()
        release = threading.Event()

        def holder():
            with locks.hold("job-1"):
                holding.set()
                release.wait(timeout=2)

        t = threading.Thread(target=holder)
        t.start()
        holding.wait(timeout=2)
        try:
            with pytest.raises(LockTimeoutError):
                with locks.hold("job-1"):
                    pass
        finally:
            release.set()
            t.join(timeout=2)
        assert locks.active_keys() == 0

    def test_zero_timeout_fails_fast(self):
        locks = KeyedLockManager(timeout=0)
        holding = threading.Event()
        release = threading.Event()

        def holder():
            with locks.hold("job-1"):
                holding.set()
                release.wait(timeout=2)

        t = threading.Thread(target=holder)
        t.start()
        holding.wait(timeout=2)
        outcome = []

        def contender():
            try:
                with locks.hold("job-1"):
                    outcome.append("acquired")
            except LockTimeoutError:
                outcome.append("timed out")

        try:
            c = threading.Thread(target=contender)
            c.start()
            c.join(timeout=2)
            assert outcome == ["timed out"]
        finally:
            release.set()
            t.join(timeout=2)

        with locks.hold("job-1"):
            with locks.hold("job-1"):
                assert locks.active_keys() == 1
