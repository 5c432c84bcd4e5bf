"""
FastAPI application initialization
"""

from fastapi import FastAPI
from api.routes import health, fcc
from core.config import settings
from core.database import dispose_engine
from core.logging import setup_logging
import logging
from api.middleware import RequestContextMiddleware
from ingestion.scheduler import FCCImportScheduler

# Configure logging
setup_logging()

logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="NetControl FCC Import API",
    description="Bulk import of FCC ULS amateur license data with checkpointed continuation",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

# Request id / latency headers
app.add_middleware(RequestContextMiddleware)

# Initialize Scheduler (also runs API-triggered invocations and continuations)
scheduler = FCCImportScheduler()
app.state.scheduler = scheduler


# Include routers
app.include_router(health.router)
app.include_router(fcc.router)


@app.on_event("startup")
async def startup_event():
    """Application startup event"""
    logger.info("Starting NetControl FCC Import API")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Database: {settings.DATABASE_URL.split('@')[1] if '@' in settings.DATABASE_URL else 'configured'}")
    logger.info(f"Continuation mode: {settings.CONTINUATION_MODE}, staging: {settings.STAGING_BACKEND}")

    # Start Scheduler
    scheduler.start()
    if settings.SCHEDULER_ENABLED:
        await scheduler.load_schedule()


@app.on_event("shutdown")
async def shutdown_event():
    """Application shutdown event"""
    logger.info("Shutting down NetControl FCC Import API")
    scheduler.stop()
    await dispose_engine()


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": "NetControl FCC Import API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
        "endpoints": {
            "download": "/fcc/download",
            "invoke": "/fcc/jobs/invoke",
            "progress": "/fcc/download/progress",
            "stats": "/fcc/stats",
            "search": "/fcc/search/{callsign}",
            "schedule": "/fcc/schedule/settings"
        }
    }
