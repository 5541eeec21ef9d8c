"""Tests for the gigmarket CLI."""

import json
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from gigmarket import JobDraft, Marketplace
from gigmarket.cli.__main__ import build_parser, main
from gigmarket.storage import SQLiteMarketplaceStorage

POSTER = "poster-1"
STUDENT_A = "student-a"


@pytest.fixture
def db_path(tmp_path, monkeypatch):
    monkeypatch.delenv("GIGMARKET_STORAGE", raising=False)
    return tmp_path / "cli.db"


@pytest.fixture
def seeded(db_path):
    """A SQLite store with one filled job whose end time has passed."""
    mp = Marketplace(SQLiteMarketplaceStorage(db_path))
    start = datetime.now(timezone.utc) - timedelta(days=1)
    job = mp.jobs.post(
        JobDraft(
            poster_id=POSTER,
            title="Flyer distribution",
            domain="marketing",
            description="Hand out flyers at the station",
            pay_offered="120",
            location_address="Central Station",
            start_time=start,
            end_time=start + timedelta(hours=3),
        )
    )
    app = mp.applications.submit(job.id, STUDENT_A)
    mp.applications.accept(app.id, actor=POSTER)
    return job


def run(db_path, *args):
    main(["--db", str(db_path), *args])


class TestParser:
    def test_requires_command(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_jobs_list_defaults(self):
        args = build_parser().parse_args(["jobs", "list"])
        assert args.status == "active"
        assert args.sort == "recent"
        assert args.limit == 20


class TestJobsCommands:
    def test_list_empty(self, db_path, capsys):
        run(db_path, "jobs", "list")
        assert "No jobs found." in capsys.readouterr().out

    def test_list_json(self, db_path, seeded, capsys):
        run(db_path, "jobs", "list", "--status", "all", "--json")

        data = json.loads(capsys.readouterr().out)
        assert [j["id"] for j in data] == [seeded.id]
        assert data[0]["status"] == "filled"

    def test_list_text(self, db_path, seeded, capsys):
        run(db_path, "jobs", "list", "--status", "filled")

        out = capsys.readouterr().out
        assert "Flyer distribution" in out
        assert seeded.id in out

    def test_history(self, db_path, seeded, capsys):
        run(db_path, "jobs", "history", seeded.id, "--json")

        data = json.loads(capsys.readouterr().out)
        assert [t["to_status"] for t in data] == ["active", "filled"]

    def test_complete(self, db_path, seeded, capsys):
        run(db_path, "jobs", "complete", seeded.id, "--actor", POSTER)
        assert f"✓ Job {seeded.id} completed" in capsys.readouterr().out

    def test_complete_by_stranger_exits_1(self, db_path, seeded):
        with pytest.raises(SystemExit) as exc_info:
            run(db_path, "jobs", "complete", seeded.id, "--actor", "intruder")
        assert exc_info.value.code == 1

    def test_missing_job_exits_1(self, db_path):
        with pytest.raises(SystemExit) as exc_info:
            run(db_path, "jobs", "history", "missing")
        assert exc_info.value.code == 1


class TestSweepAndWallet:
    def test_sweep_dry_run(self, db_path, seeded, capsys):
        run(db_path, "sweep", "--dry-run")

        out = capsys.readouterr().out
        assert "1 job(s) due for completion (dry run)" in out
        assert seeded.id in out

    def test_sweep_then_wallet(self, db_path, seeded, capsys):
        run(db_path, "sweep", "--json")
        sweep = json.loads(capsys.readouterr().out)
        assert sweep["completed"] == [seeded.id]
        (entry_id,) = sweep["entries"]

        run(db_path, "wallet", "summary", STUDENT_A, "--json")
        summary = json.loads(capsys.readouterr().out)
        assert Decimal(summary["pending_payments"]) == Decimal("120")
        assert summary["jobs_completed"] == 0

        run(db_path, "wallet", "mark-paid", entry_id, "--date", "2024-03-01")
        assert "marked paid on 2024-03-01" in capsys.readouterr().out

        run(db_path, "wallet", "entries", STUDENT_A, "--status", "paid", "--json")
        entries = json.loads(capsys.readouterr().out)
        assert [e["id"] for e in entries] == [entry_id]
        assert entries[0]["payment_date"] == "2024-03-01"

    def test_mark_paid_twice_exits_1(self, db_path, seeded, capsys):
        run(db_path, "sweep", "--json")
        (entry_id,) = json.loads(capsys.readouterr().out)["entries"]
        run(db_path, "wallet", "mark-paid", entry_id)

        with pytest.raises(SystemExit) as exc_info:
            run(db_path, "wallet", "mark-paid", entry_id)
        assert exc_info.value.code == 1

    def test_empty_wallet(self, db_path, capsys):
        run(db_path, "wallet", "entries", "nobody")
        assert "No wallet entries." in capsys.readouterr().out
