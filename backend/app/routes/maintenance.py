"""Maintenance routes.

The completion sweep: filled jobs whose end time has passed move to
completed and settle into wallet entries. Call periodically (e.g. hourly
via cron) with an admin token.
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Request
from pydantic import BaseModel, Field

from ..auth import AdminUser
from ..dependencies import MarketplaceDep
from ..logging_config import get_logger
from ..rate_limit import limiter

logger = get_logger("gigmarket.routes.maintenance")
router = APIRouter(prefix="/maintenance", tags=["maintenance"])


class SweepRequest(BaseModel):
    dry_run: bool = Field(
        default=False, description="If true, report due jobs without completing them"
    )


class SweepResponse(BaseModel):
    dry_run: bool
    due: list[str]
    completed: list[str]
    failed: list[str]
    entries: list[str]
    checked_at: datetime


class DueResponse(BaseModel):
    status: str
    jobs_due: int
    checked_at: datetime


@router.get("/due", response_model=DueResponse)
@limiter.limit("60/minute")
def jobs_due(request: Request, admin: AdminUser, mp: MarketplaceDep):
    """How many filled jobs are waiting for completion."""
    due = mp.jobs.due_for_completion()
    return DueResponse(
        status="action_needed" if due else "healthy",
        jobs_due=len(due),
        checked_at=datetime.now(timezone.utc),
    )


@router.post("/complete-due", response_model=SweepResponse)
@limiter.limit("10/minute")
def complete_due(
    request: Request, admin: AdminUser, mp: MarketplaceDep, body: SweepRequest | None = None
):
    """Run the completion sweep. Set dry_run to preview."""
    dry_run = body.dry_run if body else False
    logger.info(f"POST /maintenance/complete-due | user={admin.user_id} | dry_run={dry_run}")
    result = mp.settlement.complete_due_jobs(dry_run=dry_run)
    return SweepResponse(**result.to_dict(), checked_at=datetime.now(timezone.utc))
