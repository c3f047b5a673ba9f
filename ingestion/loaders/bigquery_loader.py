"""
Commit a run: append-load its staged objects into BigQuery, then advance
the watermark, then clean up the staged objects.

Order matters. The watermark is only advanced after the warehouse confirms
the load, so a crash before that point leaves the next run to re-extract
the same window. Staged objects are deleted last, so a crash after the
watermark write only leaves orphaned objects behind.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Sequence, Tuple

from core.exceptions import LoadError
from ingestion.checkpoint import WatermarkStore
from ingestion.connectors.bigquery import BigQueryWarehouse
from ingestion.connectors.gcs import GCSObjectStore
from ingestion.run_state import RunState
from schemas.records import WAREHOUSE_COLUMNS

logger = logging.getLogger(__name__)


@dataclass
class CommitResult:
    loaded: bool
    job_id: Optional[str] = None
    output_rows: Optional[int] = None
    watermark: Optional[datetime] = None
    deleted_objects: int = 0
    undeleted_objects: int = 0


class LoadCommitter:
    """
    Load staged files and checkpoint the run.

    Ensures:
    - Nothing staged: no warehouse call, watermark untouched
    - Load failure: watermark untouched, staged objects left in place
    - Load success: watermark set to the run's max staged change timestamp,
      then staged objects deleted on a best-effort basis
    """

    def __init__(
        self,
        warehouse: BigQueryWarehouse,
        watermark_store: WatermarkStore,
        object_store: GCSObjectStore,
        columns: Sequence[Tuple[str, str]] = WAREHOUSE_COLUMNS,
    ):
        self.warehouse = warehouse
        self.watermark_store = watermark_store
        self.object_store = object_store
        self.columns = list(columns)

    async def commit(self, run_state: RunState) -> CommitResult:
        """
        Raises:
            LoadError: If the load job fails or cannot be waited on
            CheckpointError: If the load succeeded but the watermark was not recorded
        """
        locations = list(run_state.staged_locations)

        if not locations:
            logger.info(f"Nothing staged for job '{run_state.job_name}', skipping BigQuery load")
            return CommitResult(loaded=False)

        logger.info(f"Starting BigQuery load of {len(locations)} staged files for job '{run_state.job_name}'")
        load_started = time.perf_counter()

        try:
            result = await asyncio.to_thread(self.warehouse.load_append, locations, self.columns)
        except Exception as e:
            logger.error(f"BigQuery load could not complete: {e}")
            raise LoadError(
                "BigQuery load job could not be submitted or awaited",
                context={
                    "table": getattr(self.warehouse, "table_id", None),
                    "staged_objects": len(locations),
                },
                original_exception=e
            )

        load_seconds = time.perf_counter() - load_started
        logger.info(f"BigQuery load finished in {load_seconds * 1000:.0f} ms ({load_seconds:.3f} s)")

        if not result.succeeded:
            logger.error(f"BigQuery load failed: job={result.job_id}, error={result.error}")
            raise LoadError(
                "BigQuery load job reported an error",
                context={
                    "job_id": result.job_id,
                    "error": result.error,
                    "table": getattr(self.warehouse, "table_id", None),
                    "staged_objects": len(locations),
                }
            )

        logger.info(f"BigQuery load succeeded: job={result.job_id}, rows={result.output_rows}")

        watermark = run_state.max_timestamp
        if watermark is None:
            logger.warning(
                f"Load succeeded but no staged record carried a change timestamp; "
                f"watermark for job '{run_state.job_name}' left unchanged"
            )
        else:
            await self.watermark_store.write(run_state.job_name, watermark)

        deleted, undeleted = await self._delete_staged(locations)

        return CommitResult(
            loaded=True,
            job_id=result.job_id,
            output_rows=result.output_rows,
            watermark=watermark,
            deleted_objects=deleted,
            undeleted_objects=undeleted,
        )

    async def _delete_staged(self, locations: List[str]) -> Tuple[int, int]:
        """Best-effort cleanup; failures are logged and never raised."""
        logger.info(f"Deleting {len(locations)} staged files")
        try:
            flags = await asyncio.to_thread(self.object_store.delete_objects, locations)
        except Exception as e:
            logger.error(f"Staged file cleanup failed, {len(locations)} files left behind: {e}")
            return 0, len(locations)

        deleted = 0
        for uri, ok in zip(locations, flags):
            if ok:
                deleted += 1
            else:
                logger.warning(f"Staged file not deleted: {uri}")

        logger.info(f"Deleted {deleted} of {len(locations)} staged files")
        return deleted, len(locations) - deleted
