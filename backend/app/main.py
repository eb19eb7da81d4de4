"""
Vaccination Engine - FastAPI Backend
Main application entry point
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError
import logging
import traceback

from app.api.v1.endpoints import vaccination
from app.core.config import settings
from app.core.database import engine, wait_for_warmup_complete, warmup_pool
from app.services.vaccination.errors import DomainError

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events"""
    # Startup: pre-warm database connection pool to reduce cold start latency
    warmup_pool()
    yield
    # Shutdown: close database connections gracefully
    try:
        # Wait at most 1 second for a warmup still in progress
        wait_for_warmup_complete(timeout=1.0)
        logger.info("Closing database connection pool...")
        engine.dispose(close=True)
        logger.info("Database connection pool closed successfully")
    except Exception as e:
        logger.error(f"Error closing database connections: {e}")


app = FastAPI(
    title=f"{settings.APP_NAME} API",
    description="Vaccine scheduling, dose application and batch inventory",
    version=settings.APP_VERSION,
    debug=settings.DEBUG,
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=[origin.strip() for origin in settings.CORS_ORIGINS.split(",")],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# GZip compression for responses > 1000 bytes
app.add_middleware(GZipMiddleware, minimum_size=1000)


# Business rule violations raised by the vaccination services
@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError):
    """Render a domain error as {"detail", "error_type", ...extra}"""
    logger.info(f"{request.method} {request.url.path} -> {exc.status_code} {exc.kind}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# Global exception handler for database connection errors
@app.exception_handler(OperationalError)
async def database_error_handler(request: Request, exc: OperationalError):
    """Handle database connection errors with user-friendly messages"""
    error_msg = str(exc.orig) if hasattr(exc, 'orig') else str(exc)

    if "could not translate host name" in error_msg or "nodename nor servname provided" in error_msg:
        logger.error(f"Database DNS resolution error: {error_msg}")
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "detail": "Database connection error: the database hostname cannot be resolved.",
                "error_type": "database_connection_error",
                "suggestions": [
                    "Check that DATABASE_URL in the .env file is correct",
                    "Check that the database server is running and reachable",
                ]
            }
        )

    if "statement timeout" in error_msg or "canceling statement" in error_msg:
        logger.error(f"Database statement timeout: {error_msg}")
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "detail": "The database did not answer in time. Please retry.",
                "error_type": "database_timeout",
            }
        )

    # Other database connection errors
    logger.error(f"Database operational error: {error_msg}")
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "detail": "Database connection error. The service may be temporarily unavailable.",
            "error_type": "database_error",
            "error": error_msg
        }
    )


# Global exception handler for 500s - logs the full traceback
@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    """Log unhandled exceptions and return a generic 500"""
    tb = traceback.format_exc()
    logger.error(f"Unhandled exception: {exc}\n{tb}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "detail": "Internal server error. Contact support if the problem persists.",
            "error_type": "internal_error",
        }
    )


# Include routers
app.include_router(vaccination.router, prefix="/api/v1")


@app.get("/")
async def root():
    return {"message": f"{settings.APP_NAME} API", "version": settings.APP_VERSION}


@app.get("/health")
async def health_check(check_db: bool = False):
    """Liveness check; with check_db=true also runs a SELECT 1 against the pool"""
    body = {"status": "healthy", "service": "vaccination-engine-api", "version": settings.APP_VERSION}
    if not check_db:
        return body

    from sqlalchemy import text

    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except OperationalError as e:
        logger.error(f"Health check failed: {e.orig}")
        body.update(status="unhealthy", database="disconnected")
        return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content=body)
    body["database"] = "connected"
    return body


if __name__ == "__main__":
    import uvicorn

    # SIGINT/SIGTERM go through uvicorn, which runs the lifespan shutdown above
    uvicorn.run(app, host="0.0.0.0", port=8000, log_level=settings.LOG_LEVEL.lower())
