"""
ETL statistics endpoint backed by the run history
"""
from datetime import datetime
from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from api.dependencies import get_db
from schemas.api import StatsResponse, RunSummary
from models.etl_run import ETLRun, ETLStatus
from typing import Optional
import logging

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Statistics"])


@router.get("/stats", response_model=StatsResponse)
async def get_stats(
    request: Request,
    limit: int = Query(10, ge=1, le=100, description="Number of recent runs to return"),
    job_name: Optional[str] = Query(None, description="Restrict to one job"),
    db: AsyncSession = Depends(get_db)
):
    """
    Get ETL statistics.

    Returns:
    - Run counts by outcome and total rows loaded
    - Latest success/failure and average successful run duration
    - Recent run history, newest first
    """
    request_id = getattr(request.state, "request_id", None)

    logger.info(f"[{request_id}] GET /stats")

    job_filter = [ETLRun.job_name == job_name] if job_name else []

    async def count(*conditions) -> int:
        result = await db.execute(
            select(func.count()).select_from(ETLRun).where(*job_filter, *conditions)
        )
        return result.scalar() or 0

    total_runs = await count()
    successful_runs = await count(ETLRun.status == ETLStatus.SUCCESS)
    failed_runs = await count(ETLRun.status == ETLStatus.FAILED)

    loaded_result = await db.execute(
        select(func.coalesce(func.sum(ETLRun.records_loaded), 0)).where(*job_filter, ETLRun.status == ETLStatus.SUCCESS)
    )
    total_records_loaded = int(loaded_result.scalar() or 0)

    last_success_result = await db.execute(
        select(func.max(ETLRun.completed_at)).where(*job_filter, ETLRun.status == ETLStatus.SUCCESS)
    )
    last_failure_result = await db.execute(
        select(func.max(ETLRun.completed_at)).where(*job_filter, ETLRun.status == ETLStatus.FAILED)
    )

    avg_duration_result = await db.execute(
        select(func.avg(ETLRun.duration_seconds)).where(
            *job_filter,
            ETLRun.status == ETLStatus.SUCCESS,
            ETLRun.duration_seconds.isnot(None)
        )
    )
    avg_duration = avg_duration_result.scalar()

    recent_runs_result = await db.execute(
        select(ETLRun)
        .where(*job_filter)
        .order_by(ETLRun.started_at.desc(), ETLRun.id.desc())
        .limit(limit)
    )
    recent_runs = [RunSummary.model_validate(run) for run in recent_runs_result.scalars().all()]

    logger.info(f"[{request_id}] Stats: {total_runs} runs, {total_records_loaded} records loaded")

    return StatsResponse(
        timestamp=datetime.utcnow(),
        total_runs=total_runs,
        successful_runs=successful_runs,
        failed_runs=failed_runs,
        total_records_loaded=total_records_loaded,
        last_success=last_success_result.scalar(),
        last_failure=last_failure_result.scalar(),
        avg_run_duration_seconds=round(avg_duration, 2) if avg_duration else None,
        recent_runs=recent_runs,
        request_id=request_id
    )
