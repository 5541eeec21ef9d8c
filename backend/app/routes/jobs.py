"""Job routes.

Employers post and manage jobs; any signed-in user can browse active ones.
"""

from datetime import datetime
from decimal import Decimal
from typing import Literal

from fastapi import APIRouter, HTTPException, Query, Request, status
from pydantic import BaseModel, Field, model_validator

from gigmarket.jobs.models import MAX_TITLE_LENGTH, JobDraft, JobFilters

from ..auth import CurrentUser, EmployerUser
from ..dependencies import MarketplaceDep
from ..logging_config import get_logger, log_request_outcome
from ..rate_limit import limiter
from .applications import ApplicationResponse

logger = get_logger("gigmarket.routes.jobs")
router = APIRouter(prefix="/jobs", tags=["jobs"])


# =============================================================================
# Request/Response Models
# =============================================================================

JobStatus = Literal["active", "filled", "completed", "cancelled"]


class JobCreate(BaseModel):
    """Request to post a job."""

    title: str = Field(..., min_length=1, max_length=MAX_TITLE_LENGTH)
    domain: str = Field(..., min_length=1, max_length=100)
    description: str = Field(..., min_length=1)
    pay_offered: Decimal = Field(..., gt=0)
    is_negotiable: bool = False
    location_address: str = Field(..., min_length=1)
    latitude: float | None = Field(None, ge=-90, le=90)
    longitude: float | None = Field(None, ge=-180, le=180)
    start_time: datetime
    end_time: datetime
    skills_required: str | None = None
    gender_preference: str | None = None
    age_preference: str | None = None
    optional_instructions: str | None = None

    @model_validator(mode="after")
    def check_schedule(self) -> "JobCreate":
        if self.start_time >= self.end_time:
            raise ValueError("start_time must be before end_time")
        return self


class JobResponse(BaseModel):
    """Job details."""

    id: str
    poster_id: str
    title: str
    domain: str
    description: str
    pay_offered: Decimal
    is_negotiable: bool
    location_address: str
    latitude: float | None = None
    longitude: float | None = None
    start_time: datetime
    end_time: datetime
    skills_required: str | None = None
    gender_preference: str | None = None
    age_preference: str | None = None
    optional_instructions: str | None = None
    status: JobStatus
    created_at: datetime | None = None
    updated_at: datetime | None = None
    filled_at: datetime | None = None
    completed_at: datetime | None = None
    cancelled_at: datetime | None = None


class JobListResponse(BaseModel):
    """A page of jobs."""

    jobs: list[JobResponse]
    limit: int
    offset: int


class TransitionResponse(BaseModel):
    id: str
    job_id: str
    from_status: str | None = None
    to_status: str
    actor_id: str | None = None
    metadata: dict = Field(default_factory=dict)
    created_at: datetime | None = None


def to_job_response(job) -> JobResponse:
    return JobResponse(**job.to_dict())


# =============================================================================
# Routes
# =============================================================================


@router.post("", response_model=JobResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("20/minute")
def create_job(request: Request, body: JobCreate, user: EmployerUser, mp: MarketplaceDep):
    """Post a new job. The caller becomes its poster."""
    job = mp.jobs.post(JobDraft(poster_id=user.user_id, **body.model_dump()))
    log_request_outcome(logger, "POST /jobs", user.user_id, job=job.id)
    return to_job_response(job)


@router.get("", response_model=JobListResponse)
@limiter.limit("120/minute")
def list_jobs(
    request: Request,
    user: CurrentUser,
    mp: MarketplaceDep,
    q: str | None = Query(None, max_length=100, description="Search title and description"),
    domain: str | None = None,
    status_filter: JobStatus | None = Query("active", alias="status"),
    poster_id: str | None = None,
    sort: Literal["recent", "pay", "start_time"] = "recent",
    order: Literal["asc", "desc"] = "desc",
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
):
    """Browse jobs. Defaults to active jobs, newest first."""
    filters = JobFilters(
        query=q,
        domain=domain,
        status=status_filter,
        poster_id=poster_id,
        sort=sort,
        descending=order == "desc",
        limit=limit,
        offset=offset,
    )
    jobs = mp.jobs.list(filters).all()
    return JobListResponse(
        jobs=[to_job_response(j) for j in jobs], limit=filters.limit, offset=offset
    )


@router.get("/{job_id}", response_model=JobResponse)
@limiter.limit("120/minute")
def get_job(request: Request, job_id: str, user: CurrentUser, mp: MarketplaceDep):
    return to_job_response(mp.jobs.get(job_id))


@router.get("/{job_id}/history", response_model=list[TransitionResponse])
@limiter.limit("60/minute")
def get_job_history(request: Request, job_id: str, user: CurrentUser, mp: MarketplaceDep):
    """Status changes of a job, oldest first. Poster only."""
    job = mp.jobs.get(job_id)
    if job.poster_id != user.user_id and not user.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not your job")
    return [TransitionResponse(**t.to_dict()) for t in mp.jobs.history(job_id)]


@router.get("/{job_id}/applications", response_model=list[ApplicationResponse])
@limiter.limit("60/minute")
def list_job_applications(
    request: Request,
    job_id: str,
    user: EmployerUser,
    mp: MarketplaceDep,
    status_filter: str | None = Query(None, alias="status"),
):
    """Applications received for a job. Poster only."""
    job = mp.jobs.get(job_id)
    if job.poster_id != user.user_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not your job")
    apps = mp.applications.list_for_job(job_id, status=status_filter)
    return [ApplicationResponse(**a.to_dict()) for a in apps]


@router.post("/{job_id}/cancel", response_model=JobResponse)
@limiter.limit("20/minute")
def cancel_job(request: Request, job_id: str, user: EmployerUser, mp: MarketplaceDep):
    """Cancel an active job; open applications are rejected."""
    job = mp.jobs.cancel(job_id, actor_id=user.user_id)
    log_request_outcome(logger, "POST /jobs/cancel", user.user_id, job=job_id)
    return to_job_response(job)


@router.post("/{job_id}/complete", response_model=JobResponse)
@limiter.limit("20/minute")
def complete_job(request: Request, job_id: str, user: EmployerUser, mp: MarketplaceDep):
    """Mark a filled job completed, creating the student's wallet entry."""
    job = mp.jobs.complete(job_id, actor_id=user.user_id)
    log_request_outcome(logger, "POST /jobs/complete", user.user_id, job=job_id)
    return to_job_response(job)
