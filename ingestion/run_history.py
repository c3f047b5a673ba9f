"""
Best-effort audit trail of runs in the etl_runs table
"""

from datetime import datetime
from typing import TYPE_CHECKING, Optional
import logging

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from models.base import ETLStatus
from models.etl_run import ETLRun

if TYPE_CHECKING:
    from ingestion.runner import RunResult

logger = logging.getLogger(__name__)


def _fmt(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


class RunHistoryRecorder:
    """
    Writes one ETLRun row per run.

    Audit writes never affect the run: failures are logged and dropped.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def start(self, job_name: str, run_id: str, started_at: datetime,
                    watermark_before: Optional[datetime]) -> None:
        try:
            async with self.session_factory() as session:
                session.add(ETLRun(
                    run_id=run_id,
                    job_name=job_name,
                    status=ETLStatus.RUNNING,
                    started_at=started_at.replace(tzinfo=None),
                    watermark_before=_fmt(watermark_before),
                ))
                await session.commit()
        except SQLAlchemyError as e:
            logger.warning(f"Could not record start of run {run_id}: {e}")

    async def complete(self, result: "RunResult") -> None:
        try:
            async with self.session_factory() as session:
                await session.execute(
                    update(ETLRun)
                    .where(ETLRun.run_id == result.run_id)
                    .values(
                        status=result.status,
                        completed_at=datetime.utcnow(),
                        duration_seconds=result.duration_seconds,
                        records_extracted=result.records_extracted,
                        records_staged=result.records_staged,
                        records_loaded=result.records_loaded,
                        staged_objects=result.staged_objects,
                        watermark_after=_fmt(result.watermark_after),
                        error_type=type(result.error).__name__ if result.error else None,
                        error_message=result.error.message if result.error else None,
                    )
                )
                await session.commit()
        except SQLAlchemyError as e:
            logger.warning(f"Could not record completion of run {result.run_id}: {e}")
