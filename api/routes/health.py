"""
Health check endpoint with database and ETL status
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy import select, text
from api.dependencies import get_db
from schemas.api import HealthCheckResponse, JobWatermarkInfo
from models.checkpoint import JobCheckpoint
from models.etl_run import ETLRun
from datetime import datetime
import logging

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthCheckResponse)
async def health_check(db: AsyncSession = Depends(get_db)):
    """
    Health check endpoint.

    Returns:
    - Database connectivity status
    - Watermark and latest run status for every registered job
    """

    # Check database connectivity
    db_connected = False

    try:
        await db.execute(text("SELECT 1"))
        db_connected = True
    except (SQLAlchemyError, OSError) as e:
        logger.error(f"Database connection failed: {str(e)}")

    jobs = []

    if db_connected:
        try:
            result = await db.execute(select(JobCheckpoint).order_by(JobCheckpoint.job_name))
            checkpoints = result.scalars().all()

            for checkpoint in checkpoints:
                last_run_result = await db.execute(
                    select(ETLRun)
                    .where(ETLRun.job_name == checkpoint.job_name)
                    .order_by(ETLRun.started_at.desc(), ETLRun.id.desc())
                    .limit(1)
                )
                last_run = last_run_result.scalars().first()

                jobs.append(JobWatermarkInfo(
                    job_name=checkpoint.job_name,
                    last_processed_timestamp=checkpoint.last_processed_timestamp,
                    updated_at=checkpoint.updated_at,
                    last_run_status=last_run.status if last_run else None,
                    last_run_at=last_run.started_at if last_run else None,
                    last_error=last_run.error_message if last_run else None,
                ))
        except SQLAlchemyError as e:
            logger.error(f"Failed to fetch job watermarks: {str(e)}")

    return HealthCheckResponse(
        timestamp=datetime.utcnow(),
        database_connected=db_connected,
        jobs=jobs,
    )
