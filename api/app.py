"""
SERPTrack API

FastAPI application wiring every router together:
1. Logging to stdout
2. Database initialization on startup
3. Error envelopes for HTTP and validation errors
"""

import logging
import sys
from datetime import datetime

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from serptrack import __version__
from serptrack.database import check_db_connection, init_db
from serptrack.utils.config import get_settings
from serptrack.utils.responses import error_response, validation_error

from api import admin, analytics, check_rank, history, jobs, keyword_lists, locations, plans

settings = get_settings()

# Configure logging to stdout
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    stream=sys.stdout,
    force=True,
)
logger = logging.getLogger(__name__)

# Quiet down chatty loggers
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)

app = FastAPI(
    title="SERPTrack",
    description="Keyword rank tracking powered by DataForSEO",
    version=__version__,
)

app.include_router(check_rank.router)
app.include_router(jobs.router)
app.include_router(history.router)
app.include_router(analytics.router)
app.include_router(keyword_lists.router)
app.include_router(plans.router)
app.include_router(admin.router)
app.include_router(locations.router)


# ============================================================================
# STARTUP - Initialize Database
# ============================================================================

@app.on_event("startup")
async def startup_event():
    """Initialize database on startup."""
    logger.info("Initializing database...")
    try:
        init_db()
        if check_db_connection():
            logger.info("Database connection verified")
        else:
            logger.warning("Database connection check failed - continuing anyway")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")


# ============================================================================
# ERROR ENVELOPES
# ============================================================================

@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return error_response(str(exc.detail), status_code=exc.status_code, headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = {}
    for error in exc.errors():
        field = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        errors[field or "body"] = error.get("msg", "Invalid value")
    return validation_error(errors)


# ============================================================================
# HEALTH
# ============================================================================

@app.get("/")
async def root():
    return {"status": "ok", "service": "SERPTrack"}


@app.get("/api/health")
async def health():
    """Liveness check including database status."""
    db_connected = False
    try:
        db_connected = check_db_connection()
    except Exception as e:
        logger.warning(f"Health check could not reach the database: {e}")

    return {
        "status": "healthy",
        "timestamp": datetime.utcnow().isoformat(),
        "version": __version__,
        "environment": settings.ENVIRONMENT,
        "database": "connected" if db_connected else "disconnected",
    }


# ============================================================================
# RUN SERVER
# ============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "api.app:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.ENVIRONMENT == "development",
    )
