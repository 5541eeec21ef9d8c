"""Wallet routes.

Students read their own earnings; a job's poster records the payout.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Literal

from fastapi import APIRouter, HTTPException, Query, Request, status
from pydantic import BaseModel

from ..auth import CurrentUser, StudentUser
from ..dependencies import MarketplaceDep
from ..logging_config import get_logger, log_request_outcome
from ..rate_limit import limiter

logger = get_logger("gigmarket.routes.wallet")
router = APIRouter(prefix="/wallet", tags=["wallet"])


class WalletEntryResponse(BaseModel):
    id: str
    student_id: str
    job_id: str
    amount: Decimal
    duration_hours: Decimal | None = None
    status: Literal["pending", "paid"]
    payment_date: date | None = None
    created_at: datetime | None = None


class WalletSummaryResponse(BaseModel):
    total_earned: Decimal
    pending_payments: Decimal
    hours_worked: Decimal
    jobs_completed: int


class MarkPaidRequest(BaseModel):
    payment_date: date | None = None


@router.get("/me/summary", response_model=WalletSummaryResponse)
@limiter.limit("60/minute")
def get_my_summary(request: Request, user: StudentUser, mp: MarketplaceDep):
    """Totals across the caller's wallet entries."""
    return WalletSummaryResponse(**mp.wallet.summarize(user.user_id).to_dict())


@router.get("/me/entries", response_model=list[WalletEntryResponse])
@limiter.limit("60/minute")
def get_my_entries(
    request: Request,
    user: StudentUser,
    mp: MarketplaceDep,
    status_filter: Literal["all", "paid", "pending"] = Query("all", alias="status"),
    sort: Literal["date", "amount", "hours"] = "date",
):
    """The caller's entries, filtered and sorted as on the wallet page."""
    entries = mp.wallet.entries(
        user.user_id, status=None if status_filter == "all" else status_filter, sort=sort
    )
    return [WalletEntryResponse(**e.to_dict()) for e in entries]


@router.post("/entries/{entry_id}/mark-paid", response_model=WalletEntryResponse)
@limiter.limit("20/minute")
def mark_paid(
    request: Request,
    entry_id: str,
    user: CurrentUser,
    mp: MarketplaceDep,
    body: MarkPaidRequest | None = None,
):
    """Record that the student was paid. Only the job's poster or an admin."""
    entry = mp.wallet.get(entry_id)
    job = mp.jobs.get(entry.job_id)
    if user.user_id != job.poster_id and not user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the job's poster can record payment",
        )
    payment_date = body.payment_date if body else None
    entry = mp.settlement.settle_payment(entry_id, payment_date)
    log_request_outcome(logger, "POST /wallet/mark-paid", user.user_id, entry=entry_id)
    return WalletEntryResponse(**entry.to_dict())
