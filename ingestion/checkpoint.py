"""
Watermark persistence in the batch_job_metadata table
"""

from datetime import datetime, tzinfo
from typing import Optional, Union
from zoneinfo import ZoneInfo
import logging

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.exceptions import CheckpointError
from models.checkpoint import JobCheckpoint

logger = logging.getLogger(__name__)


class WatermarkStore:
    """
    Read and advance the per-job "last processed" timestamp.

    Reads fail soft: a missing row or a read error yields None and the run
    falls back to a full-history extraction. Writes fail hard: a watermark
    that is silently not recorded makes every later run reprocess data.

    Watermarks are stored as naive source wall-clock time so they compare
    directly with the source's modified_at columns.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        source_timezone: Union[str, tzinfo] = "UTC",
    ):
        self.session_factory = session_factory
        self.source_timezone = (
            ZoneInfo(source_timezone) if isinstance(source_timezone, str) else source_timezone
        )

    async def read(self, job_name: str) -> Optional[datetime]:
        """Return the job's watermark, or None if there is none or it cannot be read."""
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    select(JobCheckpoint.last_processed_timestamp).where(
                        JobCheckpoint.job_name == job_name
                    )
                )
                row = result.first()
        except (SQLAlchemyError, OSError) as e:
            logger.warning(f"Could not read watermark for job '{job_name}', running from the beginning: {e}")
            return None

        if row is None:
            logger.warning(f"No watermark row for job '{job_name}', running from the beginning")
            return None

        return row[0]

    async def write(self, job_name: str, timestamp: datetime) -> None:
        """
        Set the job's watermark.

        Raises:
            CheckpointError: If the update fails or matches no row
        """
        value = self.to_source_wallclock(timestamp)

        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    update(JobCheckpoint)
                    .where(JobCheckpoint.job_name == job_name)
                    .values(last_processed_timestamp=value, updated_at=datetime.utcnow())
                )
                await session.commit()
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Watermark update failed for job '{job_name}': {e}")
            raise CheckpointError(
                "Failed to update watermark",
                context={"job_name": job_name, "checkpoint_value": value, "operation": "write"},
                original_exception=e
            )

        if result.rowcount == 0:
            logger.error(f"Watermark update matched no row for job '{job_name}'")
            raise CheckpointError(
                "Watermark update matched no row; register the job first",
                context={"job_name": job_name, "checkpoint_value": value, "operation": "write"}
            )

        logger.info(f"Watermark for job '{job_name}' set to {value}")

    async def register_job(self, job_name: str) -> bool:
        """
        Create the job's watermark row if it does not exist.

        Returns:
            True if a row was created
        """
        async with self.session_factory() as session:
            existing = await session.get(JobCheckpoint, job_name)
            if existing is not None:
                return False
            session.add(JobCheckpoint(job_name=job_name, last_processed_timestamp=None))
            await session.commit()
        logger.info(f"Registered job '{job_name}' in batch_job_metadata")
        return True

    def to_source_wallclock(self, timestamp: datetime) -> datetime:
        if timestamp.tzinfo is None:
            return timestamp
        return timestamp.astimezone(self.source_timezone).replace(tzinfo=None)
