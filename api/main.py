"""
FastAPI application initialization
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from api.routes import health, exports
from core.config import settings
from core.exceptions import QueryNotFoundError
from core.logging import setup_logging
import logging
from api.middleware import RequestContextMiddleware
from exporter.scheduler import ExportScheduler
from exporter.sinks.factory import dispose_external_engine

setup_logging()

logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="Grade Export Service",
    description="Exports gradebook grades to an external datastore and keeps export history",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(RequestContextMiddleware)

# Initialize Scheduler
scheduler = ExportScheduler()


# Include routers
app.include_router(health.router)
app.include_router(exports.router)


@app.exception_handler(QueryNotFoundError)
async def query_not_found_handler(request: Request, exc: QueryNotFoundError):
    return JSONResponse(status_code=404, content={"detail": exc.message})


@app.on_event("startup")
async def startup_event():
    """Application startup event"""
    logger.info("Starting Grade Export Service")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Database: {settings.DATABASE_URL.split('@')[1] if '@' in settings.DATABASE_URL else 'configured'}")

    if settings.SCHEDULER_ENABLED:
        scheduler.start()


@app.on_event("shutdown")
async def shutdown_event():
    """Application shutdown event"""
    logger.info("Shutting down Grade Export Service")
    if settings.SCHEDULER_ENABLED:
        scheduler.stop()
    await dispose_external_engine()


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": "Grade Export Service",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
        "endpoints": {
            "course_queries": "/courses/{course_id}/queries",
            "export": "/queries/{query_id}/export",
            "history": "/queries/{query_id}/history"
        }
    }
