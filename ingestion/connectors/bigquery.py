"""
BigQuery connector: append-load staged CSV objects into the destination table
"""

import logging
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

from google.api_core.exceptions import GoogleAPICallError
from google.cloud import bigquery

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LoadJobResult:
    job_id: Optional[str]
    succeeded: bool
    output_rows: Optional[int] = None
    error: Optional[str] = None


class BigQueryWarehouse:
    """
    Submits CSV load jobs against one destination table and waits for them.

    The schema is always declared explicitly (no autodetect) and the write
    disposition is always WRITE_APPEND.
    """

    def __init__(
        self,
        client: bigquery.Client,
        dataset: str,
        table: str,
        project: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.client = client
        self.dataset = dataset
        self.table = table
        self.project = project
        self.timeout = timeout

    @property
    def table_id(self) -> str:
        if self.project:
            return f"{self.project}.{self.dataset}.{self.table}"
        return f"{self.dataset}.{self.table}"

    def load_append(self, uris: Sequence[str], columns: Sequence[Tuple[str, str]]) -> LoadJobResult:
        """
        Load headerless CSV objects into the table and block until the job ends.

        A job that finishes with an error is reported through the result.
        Submission failures and an interrupted or timed-out wait raise.
        """
        job_config = bigquery.LoadJobConfig(
            schema=[bigquery.SchemaField(name, field_type) for name, field_type in columns],
            source_format=bigquery.SourceFormat.CSV,
            skip_leading_rows=0,
            allow_quoted_newlines=True,
            write_disposition=bigquery.WriteDisposition.WRITE_APPEND,
        )

        job = self.client.load_table_from_uri(list(uris), self.table_id, job_config=job_config)
        logger.info(f"BigQuery load started: job={job.job_id}, table={self.table_id}, files={len(uris)}")

        try:
            job.result(timeout=self.timeout)
        except GoogleAPICallError as e:
            error = job.error_result or {"message": str(e)}
            return LoadJobResult(job_id=job.job_id, succeeded=False, error=str(error))

        if job.error_result:
            return LoadJobResult(job_id=job.job_id, succeeded=False, error=str(job.error_result))

        return LoadJobResult(job_id=job.job_id, succeeded=True, output_rows=job.output_rows)
