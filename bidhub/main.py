from fastapi import FastAPI, Request
from contextlib import asynccontextmanager
from bidhub.core.config import settings
from bidhub.core.errors import BidError, bid_error_handler
from bidhub.db.session import Base, engine
from bidhub.api import auth, vendors, vendor_profile, bids, submissions, tools
from bidhub.services.scheduler_service import scheduler_service
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
import logging

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

Base.metadata.create_all(bind=engine)

# Initialize rate limiter; the default applies to every route without its own limit
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[settings.RATE_LIMIT_DEFAULT],
    enabled=settings.RATE_LIMIT_ENABLED,
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for startup and shutdown events.
    """
    logger.info("Starting BidHub API...")
    if settings.SCHEDULER_ENABLED:
        try:
            scheduler_service.start()
            logger.info("Scheduler service started successfully")
        except Exception as e:
            logger.error(f"Failed to start scheduler: {str(e)}")
    else:
        logger.info("Scheduler disabled by configuration")

    yield

    logger.info("Shutting down BidHub API...")
    try:
        scheduler_service.stop()
    except Exception as e:
        logger.error(f"Error stopping scheduler: {str(e)}")


app = FastAPI(
    title="BidHub API",
    lifespan=lifespan
)

# Add rate limiter to app state
app.state.limiter = limiter
app.add_middleware(SlowAPIMiddleware)
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_exception_handler(BidError, bid_error_handler)

# Include routers
app.include_router(auth.router)
app.include_router(vendors.router)
app.include_router(vendor_profile.router)
app.include_router(bids.router)
app.include_router(submissions.router)
app.include_router(tools.router)


@app.get("/")
@limiter.limit("60/minute")
def root(request: Request):
    return {"message": "Welcome to BidHub API", "docs": "/docs"}


@app.get("/health")
@limiter.limit("200/minute")  # Allow more for monitoring
def health_check(request: Request):
    """Health check endpoint with scheduler status."""
    return {
        "status": "healthy",
        "scheduler": {
            "enabled": settings.SCHEDULER_ENABLED,
            "running": scheduler_service.scheduler.running,
            "jobs": scheduler_service.get_job_status()
        }
    }
