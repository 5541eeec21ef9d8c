"""Tests for wallet and maintenance API routes."""

from datetime import timedelta
from decimal import Decimal

import pytest


@pytest.fixture
def filled_job(client, student_headers, employer_headers, posted_job):
    """The posted job with the student's application accepted."""
    app = client.post(
        "/api/v1/applications", json={"job_id": posted_job["id"]}, headers=student_headers
    ).json()
    response = client.post(
        f"/api/v1/applications/{app['id']}/resolve",
        json={"decision": "accept"},
        headers=employer_headers,
    )
    assert response.status_code == 200
    return posted_job


@pytest.fixture
def wallet_entry(client, employer_headers, student_headers, filled_job):
    client.post(f"/api/v1/jobs/{filled_job['id']}/complete", headers=employer_headers)
    entries = client.get("/api/v1/wallet/me/entries", headers=student_headers).json()
    assert len(entries) == 1
    return entries[0]


class TestWallet:
    def test_empty_summary(self, client, student_headers):
        response = client.get("/api/v1/wallet/me/summary", headers=student_headers)

        assert response.status_code == 200
        data = response.json()
        assert Decimal(str(data["total_earned"])) == 0
        assert data["jobs_completed"] == 0

    def test_pending_entry_counts_as_pending(self, client, student_headers, wallet_entry):
        data = client.get("/api/v1/wallet/me/summary", headers=student_headers).json()

        assert Decimal(str(data["pending_payments"])) == Decimal("60")
        assert Decimal(str(data["total_earned"])) == 0
        assert data["jobs_completed"] == 0

    def test_mark_paid_by_poster(self, client, employer_headers, student_headers, wallet_entry):
        response = client.post(
            f"/api/v1/wallet/entries/{wallet_entry['id']}/mark-paid",
            json={"payment_date": "2025-03-05"},
            headers=employer_headers,
        )

        assert response.status_code == 200
        assert response.json()["status"] == "paid"
        assert response.json()["payment_date"] == "2025-03-05"

        summary = client.get("/api/v1/wallet/me/summary", headers=student_headers).json()
        assert Decimal(str(summary["total_earned"])) == Decimal("60")
        assert Decimal(str(summary["hours_worked"])) == Decimal("3")
        assert summary["jobs_completed"] == 1

    def test_mark_paid_defaults_to_today(self, client, employer_headers, wallet_entry):
        response = client.post(
            f"/api/v1/wallet/entries/{wallet_entry['id']}/mark-paid", headers=employer_headers
        )

        assert response.status_code == 200
        assert response.json()["payment_date"] == "2025-03-01"

    def test_mark_paid_twice_conflicts(self, client, employer_headers, wallet_entry):
        url = f"/api/v1/wallet/entries/{wallet_entry['id']}/mark-paid"
        client.post(url, headers=employer_headers)
        response = client.post(url, headers=employer_headers)

        assert response.status_code == 409
        assert response.json()["current_state"] == "paid"

    def test_student_cannot_mark_paid(self, client, student_headers, wallet_entry):
        response = client.post(
            f"/api/v1/wallet/entries/{wallet_entry['id']}/mark-paid", headers=student_headers
        )
        assert response.status_code == 403

    def test_filter_entries_by_status(self, client, employer_headers, student_headers, wallet_entry):
        paid = client.get(
            "/api/v1/wallet/me/entries", params={"status": "paid"}, headers=student_headers
        ).json()
        pending = client.get(
            "/api/v1/wallet/me/entries", params={"status": "pending"}, headers=student_headers
        ).json()

        assert paid == []
        assert [e["id"] for e in pending] == [wallet_entry["id"]]

    def test_employers_have_no_wallet(self, client, employer_headers):
        response = client.get("/api/v1/wallet/me/summary", headers=employer_headers)
        assert response.status_code == 403


class TestMaintenance:
    def test_requires_admin(self, client, employer_headers):
        response = client.post("/api/v1/maintenance/complete-due", headers=employer_headers)
        assert response.status_code == 403

    def test_nothing_due(self, client, admin_headers, filled_job):
        response = client.get("/api/v1/maintenance/due", headers=admin_headers)

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert response.json()["jobs_due"] == 0

    def test_dry_run_reports_without_completing(
        self, client, admin_headers, employer_headers, clock, filled_job
    ):
        clock.advance(timedelta(days=2))

        response = client.post(
            "/api/v1/maintenance/complete-due", json={"dry_run": True}, headers=admin_headers
        )

        assert response.status_code == 200
        data = response.json()
        assert data["dry_run"] is True
        assert data["due"] == [filled_job["id"]]
        assert data["completed"] == []
        job = client.get(f"/api/v1/jobs/{filled_job['id']}", headers=employer_headers).json()
        assert job["status"] == "filled"

    def test_sweep_completes_and_settles(
        self, client, admin_headers, student_headers, clock, filled_job
    ):
        clock.advance(timedelta(days=2))

        response = client.post("/api/v1/maintenance/complete-due", headers=admin_headers)

        data = response.json()
        assert data["completed"] == [filled_job["id"]]
        assert len(data["entries"]) == 1
        entries = client.get("/api/v1/wallet/me/entries", headers=student_headers).json()
        assert [e["id"] for e in entries] == data["entries"]

        again = client.post("/api/v1/maintenance/complete-due", headers=admin_headers).json()
        assert again["due"] == []
