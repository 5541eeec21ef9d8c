"""Application routes.

Students apply and counter-offer; posters counter, accept or reject.
"""

from datetime import datetime
from decimal import Decimal
from typing import Literal

from fastapi import APIRouter, HTTPException, Query, Request, status
from pydantic import BaseModel, Field, model_validator

from gigmarket.protocols import GeoPoint

from ..auth import CurrentUser, EmployerUser, StudentUser
from ..dependencies import MarketplaceDep
from ..logging_config import get_logger, log_request_outcome
from ..rate_limit import limiter

logger = get_logger("gigmarket.routes.applications")
router = APIRouter(prefix="/applications", tags=["applications"])


# =============================================================================
# Request/Response Models
# =============================================================================

ApplicationStatus = Literal["pending", "negotiating", "accepted", "rejected"]


class ApplicationCreate(BaseModel):
    """Request to apply to a job."""

    job_id: str
    offer: Decimal | None = Field(None, gt=0, description="Counter-offer on a negotiable job")
    message: str | None = Field(None, max_length=2000)
    latitude: float | None = Field(None, ge=-90, le=90)
    longitude: float | None = Field(None, ge=-180, le=180)

    @model_validator(mode="after")
    def check_coordinates(self) -> "ApplicationCreate":
        if (self.latitude is None) != (self.longitude is None):
            raise ValueError("latitude and longitude must be given together")
        return self


class OfferRequest(BaseModel):
    offer: Decimal = Field(..., gt=0)


class ResolveRequest(BaseModel):
    decision: Literal["accept", "reject"]


class ApplicationResponse(BaseModel):
    """Application details."""

    id: str
    job_id: str
    student_id: str
    status: ApplicationStatus
    original_pay: Decimal
    negotiated_pay: Decimal | None = None
    final_pay: Decimal | None = None
    last_offer_by: Literal["student", "poster"] | None = None
    distance_km: float | None = None
    time_to_reach_min: int | None = None
    message: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    resolved_at: datetime | None = None


class OfferResponse(BaseModel):
    id: str
    application_id: str
    party: Literal["student", "poster"]
    amount: Decimal
    created_at: datetime | None = None


def to_application_response(app) -> ApplicationResponse:
    return ApplicationResponse(**app.to_dict())


def _check_party(mp, app, user) -> None:
    if user.user_id == app.student_id:
        return
    job = mp.jobs.get(app.job_id)
    if user.user_id != job.poster_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="Not a party to this application"
        )


# =============================================================================
# Routes
# =============================================================================


@router.post("", response_model=ApplicationResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
def submit_application(
    request: Request, body: ApplicationCreate, user: StudentUser, mp: MarketplaceDep
):
    """Apply to an active job, optionally with a counter-offer."""
    origin = None
    if body.latitude is not None:
        origin = GeoPoint(body.latitude, body.longitude)
    app = mp.applications.submit(
        body.job_id,
        user.user_id,
        offer=body.offer,
        message=body.message,
        origin=origin,
    )
    log_request_outcome(
        logger, "POST /applications", user.user_id, job=body.job_id, offer=body.offer
    )
    return to_application_response(app)


@router.get("/me", response_model=list[ApplicationResponse])
@limiter.limit("60/minute")
def list_my_applications(
    request: Request,
    user: StudentUser,
    mp: MarketplaceDep,
    status_filter: ApplicationStatus | None = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=200),
):
    """The caller's applications, newest first."""
    apps = mp.applications.list_for_student(user.user_id, status=status_filter, limit=limit)
    return [to_application_response(a) for a in apps]


@router.get("/{application_id}", response_model=ApplicationResponse)
@limiter.limit("120/minute")
def get_application(
    request: Request, application_id: str, user: CurrentUser, mp: MarketplaceDep
):
    app = mp.applications.get(application_id)
    _check_party(mp, app, user)
    return to_application_response(app)


@router.get("/{application_id}/offers", response_model=list[OfferResponse])
@limiter.limit("60/minute")
def get_offers(request: Request, application_id: str, user: CurrentUser, mp: MarketplaceDep):
    """Negotiation history, oldest first."""
    app = mp.applications.get(application_id)
    _check_party(mp, app, user)
    return [OfferResponse(**o.to_dict()) for o in mp.applications.offers(application_id)]


@router.post("/{application_id}/negotiate", response_model=ApplicationResponse)
@limiter.limit("30/minute")
def negotiate(
    request: Request,
    application_id: str,
    body: OfferRequest,
    user: CurrentUser,
    mp: MarketplaceDep,
):
    """Make a counter-offer. Student and poster must alternate."""
    app = mp.applications.negotiate(application_id, body.offer, actor=user.user_id)
    log_request_outcome(
        logger, "POST /applications/negotiate", user.user_id, app=application_id, offer=body.offer
    )
    return to_application_response(app)


@router.post("/{application_id}/withdraw-offer", response_model=ApplicationResponse)
@limiter.limit("30/minute")
def withdraw_offer(request: Request, application_id: str, user: CurrentUser, mp: MarketplaceDep):
    """Withdraw the caller's standing offer."""
    app = mp.applications.withdraw_offer(application_id, actor=user.user_id)
    log_request_outcome(logger, "POST /applications/withdraw-offer", user.user_id, app=application_id)
    return to_application_response(app)


@router.post("/{application_id}/resolve", response_model=ApplicationResponse)
@limiter.limit("30/minute")
def resolve_application(
    request: Request,
    application_id: str,
    body: ResolveRequest,
    user: EmployerUser,
    mp: MarketplaceDep,
):
    """Accept or reject an application. Accepting fills the job."""
    app = mp.applications.resolve(application_id, body.decision, actor=user.user_id)
    log_request_outcome(
        logger,
        "POST /applications/resolve",
        user.user_id,
        app=application_id,
        decision=body.decision,
    )
    return to_application_response(app)
