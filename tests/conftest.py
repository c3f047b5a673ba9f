"""
Pytest configuration and fixtures
"""

import os

# Settings are read at import time by core.database and api.main
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SCHEDULER_ENABLED", "false")

from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional, Sequence, Tuple

import pytest
import pytest_asyncio
from sqlalchemy import Column, DateTime, Integer, MetaData, Numeric, String, Table, insert
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool

from ingestion.checkpoint import WatermarkStore
from ingestion.connectors.bigquery import LoadJobResult
from ingestion.connectors.gcs import parse_gcs_uri
from ingestion.jobs.auction_winning_bid import AUCTION_FROM, AUCTION_SELECT, AUCTION_WHERE
from ingestion.loaders.bigquery_loader import LoadCommitter
from ingestion.query_planner import KeysetQueryPlanner
from ingestion.run_history import RunHistoryRecorder
from ingestion.runner import ETLRunner
from ingestion.staging.gcs_writer import StagingWriter
from ingestion.staging.serializer import CsvSerializationConfig, parse_records
from ingestion.transformers.auction_transformer import AuctionTransformer
from models.base import Base
from models.checkpoint import JobCheckpoint  # noqa: F401
from models.etl_run import ETLRun  # noqa: F401
from schemas.records import TargetRecord

JOB_NAME = "mysqlToBigQueryJob"
TEST_BUCKET = "test-bucket"

# ============================================================================
# Source tables (owned by the OLTP application, not by the pipeline)
# ============================================================================

source_metadata = MetaData()

product_table = Table(
    "product",
    source_metadata,
    Column("id", Integer, primary_key=True),
    Column("product_name", String(255)),
    Column("category", String(100)),
    Column("modified_at", DateTime, nullable=False),
)

auctions_table = Table(
    "auctions",
    source_metadata,
    Column("id", Integer, primary_key=True),
    Column("product_id", Integer, nullable=False),
    Column("max_price", Numeric(15, 2)),
    Column("start_time", DateTime),
    Column("end_time", DateTime),
    Column("modified_at", DateTime, nullable=False),
)


def product_row(id: int, modified_at: datetime, product_name: Optional[str] = None,
                category: Optional[str] = "Electronics") -> Dict:
    return {
        "id": id,
        "product_name": product_name if product_name is not None else f"Product {id}",
        "category": category,
        "modified_at": modified_at,
    }


def auction_row(id: int, product_id: int, modified_at: datetime,
                max_price: Optional[Decimal] = Decimal("100.00"),
                start_time: Optional[datetime] = datetime(2024, 1, 1, 9, 0, 0),
                end_time: Optional[datetime] = datetime(2024, 1, 2, 9, 0, 0)) -> Dict:
    return {
        "id": id,
        "product_id": product_id,
        "max_price": max_price,
        "start_time": start_time,
        "end_time": end_time,
        "modified_at": modified_at,
    }


# ============================================================================
# In-memory stand-ins for GCS and BigQuery
# ============================================================================

class InMemoryObjectStore:
    """Object store with the GCSObjectStore interface, kept in a dict."""

    def __init__(self, bucket_name: str = TEST_BUCKET):
        self.bucket_name = bucket_name
        self.objects: Dict[str, bytes] = {}
        self.content_types: Dict[str, str] = {}
        self.put_calls = 0
        self.fail_on_put: Optional[int] = None
        self.delete_error: Optional[Exception] = None

    def put_object(self, object_name: str, data: bytes, content_type: str = "text/csv") -> str:
        self.put_calls += 1
        if self.fail_on_put is not None and self.put_calls == self.fail_on_put:
            raise OSError("simulated upload failure")
        self.objects[object_name] = data
        self.content_types[object_name] = content_type
        return f"gs://{self.bucket_name}/{object_name}"

    def delete_objects(self, uris: Sequence[str]) -> List[bool]:
        if self.delete_error is not None:
            raise self.delete_error
        flags = []
        for uri in uris:
            parsed = parse_gcs_uri(uri)
            if parsed and parsed[0] == self.bucket_name and parsed[1] in self.objects:
                del self.objects[parsed[1]]
                flags.append(True)
            else:
                flags.append(False)
        return flags


class FakeWarehouse:
    """Warehouse with the BigQueryWarehouse interface that appends parsed CSV rows."""

    table_id = "test_dataset.auctions_winning_bid"

    def __init__(self, object_store: InMemoryObjectStore):
        self.object_store = object_store
        self.serialization = CsvSerializationConfig()
        self.rows: List[TargetRecord] = []
        self.load_calls: List[Tuple[List[str], List[Tuple[str, str]]]] = []
        self.job_error: Optional[str] = None
        self.raise_error: Optional[Exception] = None

    def load_append(self, uris: Sequence[str], columns: Sequence[Tuple[str, str]]) -> LoadJobResult:
        self.load_calls.append((list(uris), list(columns)))
        job_id = f"job_{len(self.load_calls)}"
        if self.raise_error is not None:
            raise self.raise_error
        if self.job_error is not None:
            return LoadJobResult(job_id=job_id, succeeded=False, error=self.job_error)

        loaded = []
        for uri in uris:
            _, object_name = parse_gcs_uri(uri)
            loaded.extend(parse_records(self.object_store.objects[object_name], self.serialization))
        self.rows.extend(loaded)
        return LoadJobResult(job_id=job_id, succeeded=True, output_rows=len(loaded))


# ============================================================================
# Database fixtures
# ============================================================================

@pytest_asyncio.fixture(scope="function")
async def test_engine(tmp_path):
    """File-backed SQLite database with pipeline and source tables"""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'etl_test.db'}",
        echo=False,
        poolclass=NullPool,  # Disable connection pooling for tests
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
        await conn.run_sync(source_metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
def seed_source(session_factory):
    """Insert product and auction rows into the source tables"""

    async def _seed(products: Sequence[Dict] = (), auctions: Sequence[Dict] = ()):
        async with session_factory() as session:
            if products:
                await session.execute(insert(product_table), list(products))
            if auctions:
                await session.execute(insert(auctions_table), list(auctions))
            await session.commit()

    return _seed


@pytest_asyncio.fixture
async def registered_job(session_factory) -> str:
    await WatermarkStore(session_factory).register_job(JOB_NAME)
    return JOB_NAME


# ============================================================================
# Pipeline fixtures
# ============================================================================

@pytest.fixture
def sqlite_planner() -> KeysetQueryPlanner:
    """The production job query with SQLite's scalar MAX() in place of GREATEST()"""
    return KeysetQueryPlanner(
        select_clause=AUCTION_SELECT.replace("GREATEST(", "MAX("),
        from_clause=AUCTION_FROM,
        where_clause=AUCTION_WHERE.replace("GREATEST(", "MAX("),
    )


@pytest.fixture
def object_store() -> InMemoryObjectStore:
    return InMemoryObjectStore()


@pytest.fixture
def warehouse(object_store) -> FakeWarehouse:
    return FakeWarehouse(object_store)


@pytest.fixture
def make_runner(session_factory, sqlite_planner, object_store, warehouse):
    """Build an ETLRunner wired to the test database and in-memory cloud fakes"""

    def _make(page_size: int = 3, chunk_size: int = 2, source_timezone: str = "UTC") -> ETLRunner:
        watermark_store = WatermarkStore(session_factory, source_timezone=source_timezone)
        return ETLRunner(
            session_factory=session_factory,
            planner=sqlite_planner,
            transformer=AuctionTransformer(source_timezone=source_timezone),
            staging_writer=StagingWriter(object_store, object_prefix="batch_load"),
            committer=LoadCommitter(warehouse, watermark_store, object_store),
            watermark_store=watermark_store,
            page_size=page_size,
            chunk_size=chunk_size,
            recorder=RunHistoryRecorder(session_factory),
        )

    return _make
