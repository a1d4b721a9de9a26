"""FastAPI application for the quiniela results sync and scoring service."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from quiniela.config import get_settings
from quiniela.database import close_db, init_db
from quiniela.routes import api_router, core_router
from quiniela.scheduler import start_scheduler, stop_scheduler
from quiniela.security import limiter

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Startup
    logger.info("Starting quiniela service...")
    await init_db()

    if settings.SCHEDULER_ENABLED:
        start_scheduler()
    else:
        logger.info("Scheduler disabled (SCHEDULER_ENABLED=false)")

    yield

    # Shutdown
    logger.info("Shutting down...")
    stop_scheduler()
    await close_db()


app = FastAPI(
    title="Quiniela",
    description="Results sync and scoring for a score-prediction pool",
    version="1.0.0",
    lifespan=lifespan,
)

# Add rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Include routers
app.include_router(core_router)
app.include_router(api_router)
