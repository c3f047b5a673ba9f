
"""
FastAPI application initialization
"""

from fastapi import FastAPI
from api.routes import health, stats
from core.config import settings
from core.logging import setup_logging
import logging
from api.middleware import RequestContextMiddleware
from ingestion.scheduler import ETLScheduler

setup_logging()

logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="Auction ETL API",
    description="Operational endpoints for the MySQL to BigQuery auction pipeline",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(RequestContextMiddleware)

# Initialize Scheduler
scheduler = ETLScheduler()


# Include routers
app.include_router(health.router)
app.include_router(stats.router)


@app.on_event("startup")
async def startup_event():
    """Application startup event"""
    logger.info("Starting Auction ETL API")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Database: {settings.DATABASE_URL.split('@')[1] if '@' in settings.DATABASE_URL else 'configured'}")

    if settings.SCHEDULER_ENABLED:
        scheduler.start()
    else:
        logger.info("Scheduler disabled; runs must be triggered with scripts/run_etl.py")


@app.on_event("shutdown")
async def shutdown_event():
    """Application shutdown event"""
    logger.info("Shutting down Auction ETL API")
    scheduler.stop()


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": "Auction ETL API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
        "endpoints": {
            "stats": "/stats"
        }
    }
