"""
Tournament Statistics API Server

FastAPI server that records match results and serves player statistics,
leaderboards and tournament-wide aggregates.
"""

from contextlib import asynccontextmanager
import logging
import os
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import uvicorn
from slowapi import _rate_limit_exceeded_handler  # type: ignore
from slowapi.errors import RateLimitExceeded  # type: ignore

from tournament.api.routes import router, limiter as routes_limiter
from tournament.database import db
from tournament.database.init_defaults import init_defaults
from tournament.models.schemas import HealthResponse
from tournament.services.errors import TournamentError
from tournament.utils.datetime_utils import utcnow

# Set up logging
# Allow log level to be configured via environment variable (default: INFO)
log_level = os.getenv("LOG_LEVEL", "INFO").upper()
numeric_level = getattr(logging, log_level, logging.INFO)
logging.basicConfig(
    level=numeric_level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

STARTED_AT = time.monotonic()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan handler for startup and shutdown events."""
    # Startup
    logger.info("Starting up Tournament Statistics API...")

    # Create tables if they don't exist (fallback when migrations have not run)
    try:
        await db.init_database()
        logger.info("Database initialized")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}", exc_info=True)

    # Seed the default phases on an empty database
    try:
        await init_defaults()
        logger.info("Default phases initialized")
    except Exception as e:
        logger.error(f"Failed to initialize defaults: {e}", exc_info=True)

    yield  # App is running

    # Shutdown
    logger.info("Shutting down Tournament Statistics API...")
    try:
        await db.close_database()
        logger.info("Database connections closed")
    except Exception as e:
        logger.error(f"Error closing database connections: {e}", exc_info=True)


app = FastAPI(
    title="Tournament Statistics API",
    description="API for recording tournament matches and retrieving player statistics and leaderboards",
    version="1.0.0",
    lifespan=lifespan,
)

# Setup rate limiter
app.state.limiter = routes_limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(TournamentError)
async def tournament_error_handler(request: Request, exc: TournamentError):
    """Render service errors as {"success": false, "error": kind, "detail": ...}."""
    if exc.status_code >= 500:
        logger.error(f"{exc.kind} on {request.method} {request.url.path}: {exc.detail}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# Add CORS middleware - origins configured via ALLOWED_ORIGINS env var
allowed_origins = os.getenv("ALLOWED_ORIGINS", "http://localhost:3000").split(",")
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(router)


@app.get("/api")
async def api_root():
    return {"message": "API running"}


@app.get("/api/health", response_model=HealthResponse)
async def health():
    """Liveness check: status, current time, process uptime and environment."""
    return HealthResponse(
        status="OK",
        timestamp=utcnow().isoformat(),
        uptime=time.monotonic() - STARTED_AT,
        environment=os.getenv("ENV") or None,
    )


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
