# ============================================================================
# File: ingestion/runner.py
# Description: Orchestrates one incremental run: extract, transform, stage, commit
# ============================================================================
"""
ETL Runner - sequences one incremental pipeline execution for a job.

Flow:
    Watermark Store -> Keyset reader -> Transformer -> Staging writer
    -> Load committer -> Watermark Store

Everything in a run is sequential: a chunk is extracted, transformed and
staged before the next page is requested, and the commit starts only
after the last chunk is staged. Failures are not retried in-process; the
next run (same watermark) is the retry.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional
import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.exceptions import ConfigurationError, ETLException
from ingestion.checkpoint import WatermarkStore
from ingestion.extractors.keyset_reader import KeysetPagingReader
from ingestion.loaders.bigquery_loader import LoadCommitter
from ingestion.query_planner import KeysetQueryPlanner
from ingestion.run_history import RunHistoryRecorder
from ingestion.run_state import RunState
from ingestion.staging.gcs_writer import StagingWriter
from ingestion.transformers.auction_transformer import AuctionTransformer
from models.base import ETLStatus
from schemas.records import TargetRecord

logger = logging.getLogger(__name__)


@dataclass
class RunResult:
    """Outcome of one run: succeeded or failed, plus the cause."""

    job_name: str
    run_id: str
    status: ETLStatus = ETLStatus.RUNNING
    records_extracted: int = 0
    records_staged: int = 0
    staged_objects: int = 0
    records_loaded: int = 0
    watermark_before: Optional[datetime] = None
    watermark_after: Optional[datetime] = None
    duration_seconds: Optional[float] = None
    error: Optional[ETLException] = None

    @property
    def succeeded(self) -> bool:
        return self.status == ETLStatus.SUCCESS

    def to_dict(self) -> Dict[str, Any]:
        return {
            "job_name": self.job_name,
            "run_id": self.run_id,
            "status": self.status.value,
            "records_extracted": self.records_extracted,
            "records_staged": self.records_staged,
            "staged_objects": self.staged_objects,
            "records_loaded": self.records_loaded,
            "watermark_before": self.watermark_before.isoformat() if self.watermark_before else None,
            "watermark_after": self.watermark_after.isoformat() if self.watermark_after else None,
            "duration_seconds": self.duration_seconds,
            "error": self.error.to_dict() if self.error else None,
        }


class ETLRunner:
    """
    Incremental pipeline orchestrator

    Responsibilities:
    - Read the job's watermark and extract only newer rows
    - Transform and stage rows in bounded chunks
    - Hand the staged files to the committer, which alone moves the watermark
    - Report every run as one succeeded/failed result
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        planner: KeysetQueryPlanner,
        transformer: AuctionTransformer,
        staging_writer: StagingWriter,
        committer: LoadCommitter,
        watermark_store: WatermarkStore,
        page_size: int,
        chunk_size: int,
        recorder: Optional[RunHistoryRecorder] = None,
    ):
        if chunk_size < 1:
            raise ConfigurationError(
                f"chunk_size must be >= 1, got {chunk_size}",
                context={"parameter": "chunk_size", "value": chunk_size}
            )
        self.session_factory = session_factory
        self.planner = planner
        self.transformer = transformer
        self.staging_writer = staging_writer
        self.committer = committer
        self.watermark_store = watermark_store
        self.page_size = page_size
        self.chunk_size = chunk_size
        self.recorder = recorder

    async def run(self, job_name: str) -> RunResult:
        """
        Run one incremental execution of ``job_name``.

        Never raises pipeline errors: a failed run returns a RunResult with
        status FAILED and the causing ETLException in ``error``. Durable
        state (watermark, loaded rows) is left as of the last successful
        commit.
        """
        run_state = RunState(job_name=job_name)
        result = RunResult(job_name=job_name, run_id=run_state.run_id)
        reader: Optional[KeysetPagingReader] = None

        logger.info(f"Starting run {run_state.run_id} for job '{job_name}'")

        try:
            # --------------------------------------------------
            # PHASE 1: WATERMARK
            # --------------------------------------------------
            watermark = await self.watermark_store.read(job_name)
            result.watermark_before = watermark
            result.watermark_after = watermark
            logger.info(f"Job '{job_name}' watermark: {watermark}")

            if self.recorder:
                await self.recorder.start(job_name, run_state.run_id, run_state.started_at, watermark)

            # --------------------------------------------------
            # PHASE 2: EXTRACT -> TRANSFORM -> STAGE
            # --------------------------------------------------
            reader = KeysetPagingReader(
                self.session_factory,
                self.planner,
                self.page_size,
                watermark=watermark,
            )

            chunk: List[TargetRecord] = []
            async for source_record in reader:
                chunk.append(self.transformer.transform(source_record))
                if len(chunk) >= self.chunk_size:
                    await self.staging_writer.write_chunk(chunk, run_state)
                    chunk = []
            await self.staging_writer.write_chunk(chunk, run_state)

            logger.info(
                f"Staging complete: {run_state.records_staged} records in "
                f"{run_state.chunks_staged} files, max change timestamp {run_state.max_timestamp}"
            )

            # --------------------------------------------------
            # PHASE 3: LOAD + CHECKPOINT
            # --------------------------------------------------
            commit = await self.committer.commit(run_state)

            result.records_loaded = commit.output_rows or 0
            if commit.watermark is not None:
                result.watermark_after = self.watermark_store.to_source_wallclock(commit.watermark)
            result.status = ETLStatus.SUCCESS

        except ETLException as e:
            result.status = ETLStatus.FAILED
            result.error = e
            logger.error(
                f"Run {run_state.run_id} for job '{job_name}' failed: {e.message}",
                extra={"error_context": e.to_dict()}
            )

        except Exception as e:
            logger.exception(f"Unexpected error in run {run_state.run_id} for job '{job_name}'")
            result.status = ETLStatus.FAILED
            result.error = ETLException(
                "Unexpected error in ETL pipeline",
                context={"job_name": job_name, "run_id": run_state.run_id},
                original_exception=e
            )

        if result.status == ETLStatus.FAILED:
            # Watermark was not advanced by this run
            result.watermark_after = result.watermark_before

        result.records_extracted = reader.records_read if reader else 0
        result.records_staged = run_state.records_staged
        result.staged_objects = run_state.chunks_staged
        result.duration_seconds = round(run_state.elapsed_seconds(), 3)

        if self.recorder:
            await self.recorder.complete(result)

        logger.info(
            f"Run {run_state.run_id} finished: {result.status.value} - "
            f"extracted={result.records_extracted}, staged={result.records_staged}, "
            f"loaded={result.records_loaded}, duration={result.duration_seconds}s"
        )
        return result
