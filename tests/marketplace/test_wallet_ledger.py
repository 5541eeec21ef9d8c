"""Tests for wallet entries and earnings summaries."""

import random
from datetime import date, timedelta
from decimal import Decimal

import pytest

from gigmarket import IntegrityError, InvalidStateError, NotFoundError, ValidationError
from gigmarket.storage import InMemoryMarketplaceStorage
from gigmarket.wallet import WalletEntry, WalletLedger, WalletSummary
from gigmarket.wallet.models import WalletEntryStatus


@pytest.fixture
def wallet(clock):
    return WalletLedger(InMemoryMarketplaceStorage(), clock=clock)


def _entry(i: int, amount, hours=None, paid=False) -> WalletEntry:
    return WalletEntry(
        id=f"entry-{i}",
        student_id="student-a",
        job_id=f"job-{i}",
        amount=amount,
        duration_hours=hours,
        status="paid" if paid else "pending",
        payment_date=date(2024, 3, 1) if paid else None,
    )


class TestCreate:
    def test_create_pending_entry(self, wallet, clock):
        entry = wallet.create("student-a", "job-1", "480", duration_hours="4")

        assert entry.status == "pending"
        assert entry.amount == Decimal("480")
        assert entry.duration_hours == Decimal("4")
        assert entry.payment_date is None
        assert entry.created_at == clock.now()

    def test_create_is_idempotent(self, wallet):
        first = wallet.create("student-a", "job-1", 480)
        second = wallet.create("student-a", "job-1", Decimal("480.00"))

        assert second.id == first.id
        assert len(wallet.entries("student-a")) == 1

    def test_amount_mismatch_is_integrity_error(self, wallet, caplog):
        wallet.create("student-a", "job-1", 480)

        with pytest.raises(IntegrityError):
            wallet.create("student-a", "job-1", 500)
        assert "CRITICAL" in caplog.text

    def test_lost_insert_race_returns_winner(self, wallet, monkeypatch):
        winner = wallet.create("student-a", "job-1", 480)
        # Simulate a reader that checked before the winner's insert landed
        original_find = wallet.storage.find_entry
        calls = []

        def find_once_missing(job_id, student_id):
            calls.append(job_id)
            return None if len(calls) == 1 else original_find(job_id, student_id)

        monkeypatch.setattr(wallet.storage, "find_entry", find_once_missing)

        entry = wallet.create("student-a", "job-1", 480)

        assert entry.id == winner.id
        assert len(calls) == 2

    def test_rejects_non_numeric_amount(self, wallet):
        with pytest.raises(ValidationError):
            wallet.create("student-a", "job-1", "a lot")


class TestMarkPaid:
    def test_mark_paid_with_date(self, wallet):
        entry = wallet.create("student-a", "job-1", 480, duration_hours=4)

        paid = wallet.mark_paid(entry.id, "2024-03-01")

        assert paid.status == "paid"
        assert paid.payment_date == date(2024, 3, 1)
        assert paid.amount == Decimal("480")
        assert paid.duration_hours == Decimal("4")

    def test_mark_paid_defaults_to_today(self, wallet, clock):
        entry = wallet.create("student-a", "job-1", 480)
        clock.advance(timedelta(days=3))

        paid = wallet.mark_paid(entry.id)

        assert paid.payment_date == clock.now().date()

    def test_mark_paid_twice(self, wallet):
        entry = wallet.create("student-a", "job-1", 480)
        wallet.mark_paid(entry.id, date(2024, 3, 1))

        with pytest.raises(InvalidStateError) as exc_info:
            wallet.mark_paid(entry.id, date(2024, 3, 2))

        assert exc_info.value.current_state == "paid"
        assert wallet.get(entry.id).payment_date == date(2024, 3, 1)

    def test_mark_paid_missing(self, wallet):
        with pytest.raises(NotFoundError):
            wallet.mark_paid("missing")

    def test_bad_date(self, wallet):
        entry = wallet.create("student-a", "job-1", 480)

        with pytest.raises(ValidationError):
            wallet.mark_paid(entry.id, "first of March")


class TestEntries:
    @pytest.fixture
    def populated(self, wallet, clock):
        ids = {}
        for job_id, amount, hours in (("job-1", 480, 4), ("job-2", 300, 6), ("job-3", 120, 1)):
            ids[job_id] = wallet.create("student-a", job_id, amount, hours).id
            clock.advance(timedelta(hours=1))
        wallet.mark_paid(ids["job-1"], date(2024, 3, 1))
        wallet.create("student-b", "job-4", 999)
        return ids

    def test_newest_first_by_default(self, wallet, populated):
        entries = wallet.entries("student-a")
        assert [e.job_id for e in entries] == ["job-3", "job-2", "job-1"]

    def test_sort_by_amount_and_hours(self, wallet, populated):
        by_amount = wallet.entries("student-a", sort="amount")
        by_hours = wallet.entries("student-a", sort="hours", descending=False)

        assert [e.amount for e in by_amount] == [Decimal("480"), Decimal("300"), Decimal("120")]
        assert [e.job_id for e in by_hours] == ["job-3", "job-1", "job-2"]

    def test_filter_by_status(self, wallet, populated):
        paid = wallet.entries("student-a", status="paid")
        pending = wallet.entries("student-a", status=WalletEntryStatus.PENDING)

        assert [e.job_id for e in paid] == ["job-1"]
        assert {e.job_id for e in pending} == {"job-2", "job-3"}

    def test_invalid_filters(self, wallet):
        with pytest.raises(ValidationError):
            wallet.entries("student-a", status="refunded")
        with pytest.raises(ValidationError):
            wallet.entries("student-a", sort="colour")


class TestSummary:
    def test_summarize(self, wallet):
        paid = wallet.create("student-a", "job-1", 480, duration_hours=4)
        wallet.mark_paid(paid.id, date(2024, 3, 1))
        wallet.create("student-a", "job-2", 300)

        summary = wallet.summarize("student-a")

        assert summary.total_earned == Decimal("480")
        assert summary.pending_payments == Decimal("300")
        assert summary.hours_worked == Decimal("4")
        assert summary.jobs_completed == 1

    def test_empty_summary(self, wallet):
        assert wallet.summarize("nobody") == WalletSummary()

    def test_paid_entry_without_hours(self):
        summary = WalletSummary.fold([_entry(1, 50, hours=None, paid=True)])
        assert summary.hours_worked == 0
        assert summary.jobs_completed == 1

    def test_fold_is_order_independent(self):
        rng = random.Random(1234)
        entries = [
            _entry(i, rng.randint(10, 900), hours=rng.choice([None, 1, 2.5, 8]), paid=rng.random() < 0.5)
            for i in range(40)
        ]
        expected = WalletSummary.fold(entries)

        for _ in range(25):
            shuffled = entries[:]
            rng.shuffle(shuffled)
            assert WalletSummary.fold(shuffled) == expected

    def test_merge_of_partitions_equals_fold(self):
        rng = random.Random(99)
        entries = [
            _entry(i, rng.randint(10, 900), hours=rng.randint(1, 9), paid=rng.random() < 0.5)
            for i in range(30)
        ]
        expected = WalletSummary.fold(entries)

        for _ in range(20):
            cut = rng.randint(0, len(entries))
            left, right = WalletSummary.fold(entries[:cut]), WalletSummary.fold(entries[cut:])
            assert left.merge(right) == expected
            assert right.merge(left) == expected
