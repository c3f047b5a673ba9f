"""
Keyset-paginated reader over the source database.

State machine:

    IDLE -> FETCHING -> YIELDING -> FETCHING -> ... -> EXHAUSTED

The first page is bound to the run's watermark only; every following page
is also bound to the sort-key values of the last row of the previous page.
A page shorter than ``page_size`` (or empty) ends the read. Pages are
fetched lazily, one at a time, so a page is only requested after the
consumer has finished with the previous one.
"""

import enum
import logging
from datetime import datetime
from typing import Any, AsyncIterator, Callable, Dict, List, Mapping, NamedTuple, Optional, Tuple

from sqlalchemy import DateTime, bindparam, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.exceptions import ConfigurationError, ExtractionError
from ingestion.extractors.auction_row_mapper import AUCTION_COLUMN_TYPES, map_auction_row
from ingestion.query_planner import CURSOR_PARAM_PREFIX, KeysetQueryPlanner
from schemas.records import SourceRecord

logger = logging.getLogger(__name__)

# Lower bound used when a job has no watermark yet (MySQL DATETIME minimum)
WATERMARK_SENTINEL = datetime(1000, 1, 1)


class PageCursor(NamedTuple):
    """Sort-key values of the last row emitted on the previous page."""
    change_timestamp: Optional[datetime]
    primary_id: Any


class ReaderState(str, enum.Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    YIELDING = "yielding"
    EXHAUSTED = "exhausted"


class KeysetPagingReader:
    """
    Lazily yields SourceRecords page by page using keyset pagination.

    A reader belongs to exactly one run: it can be iterated once. Build a
    new reader for every run.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        planner: KeysetQueryPlanner,
        page_size: int,
        watermark: Optional[datetime] = None,
        row_mapper: Callable[[Mapping[str, Any]], SourceRecord] = map_auction_row,
        column_types: Optional[Dict[str, Any]] = None,
    ):
        if page_size < 1:
            raise ConfigurationError(
                f"page_size must be >= 1, got {page_size}",
                context={"parameter": "page_size", "value": page_size}
            )
        self.session_factory = session_factory
        self.planner = planner
        self.page_size = page_size
        self.watermark = watermark if watermark is not None else WATERMARK_SENTINEL
        self.row_mapper = row_mapper
        self.column_types = AUCTION_COLUMN_TYPES if column_types is None else column_types

        self.state = ReaderState.IDLE
        self.cursor: Optional[Tuple[Any, ...]] = None
        self.pages_fetched = 0
        self.records_read = 0

    def __aiter__(self) -> AsyncIterator[SourceRecord]:
        return self.read()

    async def read(self) -> AsyncIterator[SourceRecord]:
        if self.state is not ReaderState.IDLE:
            raise RuntimeError("KeysetPagingReader can only be read once; create a new reader per run")

        logger.info(
            f"Reading source after watermark {self.watermark} "
            f"(page size {self.page_size}, sort keys {self.planner.sort_key_names})"
        )

        while True:
            self.state = ReaderState.FETCHING
            rows = await self._fetch_page()

            if not rows:
                break

            self.state = ReaderState.YIELDING
            for row in rows:
                record = self.row_mapper(row)
                self.records_read += 1
                yield record

            last = rows[-1]
            values = tuple(last[key] for key in self.planner.sort_key_names)
            self.cursor = PageCursor(*values) if len(values) == 2 else values

            if len(rows) < self.page_size:
                break

        self.state = ReaderState.EXHAUSTED
        logger.info(
            f"Source exhausted: {self.records_read} records in {self.pages_fetched} pages"
        )

    async def _fetch_page(self) -> List[Mapping[str, Any]]:
        page_number = self.pages_fetched + 1
        params: Dict[str, Any] = {self.planner.watermark_param: self.watermark}
        bind_types = [bindparam(self.planner.watermark_param, type_=DateTime())]

        if self.cursor is None:
            sql = self.planner.first_page_query(self.page_size)
        else:
            sql = self.planner.remaining_pages_query(self.page_size)
            params.update(self.planner.cursor_params(self.cursor))
            for key in self.planner.sort_key_names:
                key_type = self.column_types.get(key)
                if key_type is not None:
                    bind_types.append(bindparam(f"{CURSOR_PARAM_PREFIX}{key}", type_=key_type))

        stmt = text(sql).bindparams(*bind_types)
        if self.column_types:
            stmt = stmt.columns(**self.column_types)

        try:
            async with self.session_factory() as session:
                result = await session.execute(stmt, params)
                rows = list(result.mappings().all())
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Page {page_number} query failed: {e}")
            raise ExtractionError(
                "Failed to fetch page from source",
                context={"page": page_number, "cursor": self.cursor},
                original_exception=e
            )

        self.pages_fetched = page_number
        logger.debug(f"Fetched page {page_number}: {len(rows)} rows (cursor={self.cursor})")
        return rows
