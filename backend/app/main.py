"""Gigmarket Backend API - FastAPI application."""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from gigmarket import __version__

from .config import get_settings
from .dependencies import get_marketplace_instance, reset_marketplace
from .errors import register_error_handlers
from .logging_config import configure_logging, get_logger
from .rate_limit import limiter
from .routes import applications_router, jobs_router, maintenance_router, wallet_router

API_PREFIX = "/api/v1"

logger = get_logger("gigmarket.backend")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    settings = get_settings()
    configure_logging("DEBUG" if settings.debug else None)
    logger.info(
        f"Starting Gigmarket Backend API (debug={settings.debug}, "
        f"storage={settings.storage_backend})"
    )
    yield
    logger.info("Shutting down Gigmarket Backend API")
    reset_marketplace()


app = FastAPI(
    title="Gigmarket Backend API",
    description="Student gig marketplace: jobs, applications, negotiation and wallets",
    version=__version__,
    lifespan=lifespan,
)

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
register_error_handlers(app)

# CORS middleware
settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(jobs_router, prefix=API_PREFIX)
app.include_router(applications_router, prefix=API_PREFIX)
app.include_router(wallet_router, prefix=API_PREFIX)
app.include_router(maintenance_router, prefix=API_PREFIX)


@app.get("/")
def root():
    """Liveness check."""
    return {
        "service": "gigmarket-backend",
        "version": __version__,
        "status": "ok",
    }


@app.get("/health")
def health():
    """Health check that touches storage."""
    storage_status = "ok"
    try:
        mp = get_marketplace_instance()
        mp.jobs.due_for_completion()
    except Exception as e:
        logger.error(f"Health check failed: {e}")
        storage_status = f"error: {str(e)[:50]}"

    return {
        "status": "healthy" if storage_status == "ok" else "degraded",
        "storage": storage_status,
    }
