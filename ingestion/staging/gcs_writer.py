"""
Stage transformed chunks as CSV objects in GCS
"""

import asyncio
import logging
import uuid
from typing import Optional, Sequence

from core.exceptions import StagingError
from ingestion.connectors.gcs import GCSObjectStore
from ingestion.run_state import RunState
from ingestion.staging.serializer import CsvSerializationConfig, serialize_records
from schemas.records import TargetRecord

logger = logging.getLogger(__name__)

CSV_CONTENT_TYPE = "text/csv"


class StagingWriter:
    """
    Write one chunk of TargetRecords per object.

    Ensures:
    - Empty chunks write nothing and leave the run state alone
    - A chunk is recorded in the run state only after its upload succeeded
    - Object names never collide across runs or chunks
    """

    def __init__(
        self,
        object_store: GCSObjectStore,
        serialization: Optional[CsvSerializationConfig] = None,
        object_prefix: str = "batch_load",
    ):
        self.object_store = object_store
        self.serialization = serialization or CsvSerializationConfig()
        self.object_prefix = object_prefix

    def object_name(self, run_state: RunState) -> str:
        return (
            f"{self.object_prefix}_{run_state.run_id}_"
            f"{run_state.next_step_id()}_{uuid.uuid4().hex}.csv"
        )

    async def write_chunk(self, records: Sequence[TargetRecord], run_state: RunState) -> Optional[str]:
        """
        Serialize and upload a chunk.

        Returns:
            The staged object's URI, or None for an empty chunk

        Raises:
            StagingError: If serialization or upload fails; run_state is unchanged
        """
        if not records:
            logger.debug("Empty chunk, nothing to stage")
            return None

        records = list(records)
        object_name = self.object_name(run_state)

        try:
            data = serialize_records(records, self.serialization)
            uri = await asyncio.to_thread(
                self.object_store.put_object, object_name, data, CSV_CONTENT_TYPE
            )
        except Exception as e:
            logger.error(f"Failed to stage chunk {run_state.next_step_id()} as {object_name}: {e}")
            raise StagingError(
                "Failed to upload chunk to object storage",
                context={
                    "bucket": getattr(self.object_store, "bucket_name", None),
                    "object_name": object_name,
                    "chunk_size": len(records),
                    "chunks_already_staged": run_state.chunks_staged,
                },
                original_exception=e
            )

        run_state.record_staged(uri, records)
        logger.info(f"Staged {len(records)} records to {uri}")
        return uri
