"""
Auction winning-bid job: auctions joined with their products, loaded
incrementally into the BigQuery winning-bid table.

The change timestamp of a row is the later of the auction's and the
product's modified_at, so an edit to either side re-exports the row.
"""

from typing import Optional
import logging

from google.cloud import bigquery, storage
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.config import Settings
from ingestion.checkpoint import WatermarkStore
from ingestion.connectors.bigquery import BigQueryWarehouse
from ingestion.connectors.gcs import GCSObjectStore
from ingestion.loaders.bigquery_loader import LoadCommitter
from ingestion.query_planner import DEFAULT_SORT_KEYS, KeysetQueryPlanner
from ingestion.run_history import RunHistoryRecorder
from ingestion.runner import ETLRunner
from ingestion.staging.gcs_writer import StagingWriter
from ingestion.staging.serializer import CsvSerializationConfig
from ingestion.transformers.auction_transformer import AuctionTransformer

logger = logging.getLogger(__name__)

AUCTION_SELECT = (
    "a.id AS auction_id, "
    "p.id AS product_id, "
    "p.product_name AS product_name, "
    "p.category AS product_category, "
    "a.max_price AS max_price, "
    "a.start_time AS auction_start_time, "
    "a.end_time AS auction_end_time, "
    "GREATEST(a.modified_at, p.modified_at) AS last_modified"
)
AUCTION_FROM = "auctions a JOIN product p ON a.product_id = p.id"
AUCTION_WHERE = "GREATEST(a.modified_at, p.modified_at) > :last_processed_timestamp"


def build_planner() -> KeysetQueryPlanner:
    return KeysetQueryPlanner(
        select_clause=AUCTION_SELECT,
        from_clause=AUCTION_FROM,
        where_clause=AUCTION_WHERE,
        sort_keys=DEFAULT_SORT_KEYS,
    )


def build_runner(
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
    storage_client: Optional[storage.Client] = None,
    bigquery_client: Optional[bigquery.Client] = None,
) -> ETLRunner:
    """
    Wire the winning-bid pipeline from settings.

    Google clients are created here (not at import) and pick up
    Application Default Credentials unless clients are passed in.
    """
    if storage_client is None:
        storage_client = storage.Client(project=settings.GCP_PROJECT_ID)
    if bigquery_client is None:
        bigquery_client = bigquery.Client(project=settings.GCP_PROJECT_ID)

    object_store = GCSObjectStore(storage_client, settings.GCS_BUCKET_NAME)
    warehouse = BigQueryWarehouse(
        bigquery_client,
        dataset=settings.BIGQUERY_DATASET,
        table=settings.BIGQUERY_TABLE,
        project=settings.GCP_PROJECT_ID,
        timeout=settings.BIGQUERY_LOAD_TIMEOUT_SECONDS,
    )
    watermark_store = WatermarkStore(session_factory, source_timezone=settings.SOURCE_TIMEZONE)

    staging_writer = StagingWriter(
        object_store,
        serialization=CsvSerializationConfig(
            timestamp_format=settings.STAGING_TIMESTAMP_FORMAT,
            timezone=settings.STAGING_TIMEZONE,
        ),
        object_prefix=settings.GCS_OBJECT_PREFIX,
    )

    logger.debug(
        f"Built runner: bucket={settings.GCS_BUCKET_NAME}, table={warehouse.table_id}, "
        f"page_size={settings.ETL_PAGE_SIZE}, chunk_size={settings.ETL_CHUNK_SIZE}"
    )

    return ETLRunner(
        session_factory=session_factory,
        planner=build_planner(),
        transformer=AuctionTransformer(source_timezone=settings.SOURCE_TIMEZONE),
        staging_writer=staging_writer,
        committer=LoadCommitter(warehouse, watermark_store, object_store),
        watermark_store=watermark_store,
        page_size=settings.ETL_PAGE_SIZE,
        chunk_size=settings.ETL_CHUNK_SIZE,
        recorder=RunHistoryRecorder(session_factory),
    )
