"""
Transform joined auction rows into warehouse rows
"""

from datetime import datetime, timezone, tzinfo
from decimal import Decimal
from typing import Iterable, List, Optional, Union
from zoneinfo import ZoneInfo
import logging

from schemas.records import SourceRecord, TargetRecord

logger = logging.getLogger(__name__)


class AuctionTransformer:
    """
    Map SourceRecord to TargetRecord.

    Handles:
    - Null preservation (a missing source value stays missing)
    - Decimal price -> integer, truncated toward zero
    - Source wall-clock timestamps -> UTC instants

    Pure: no I/O and no state shared between records, so records can be
    transformed independently and in any order.
    """

    def __init__(self, source_timezone: Union[str, tzinfo] = "UTC"):
        self.source_timezone = (
            ZoneInfo(source_timezone) if isinstance(source_timezone, str) else source_timezone
        )

    def transform(self, record: SourceRecord) -> TargetRecord:
        logger.debug(f"Transforming auction_id={record.auction_id}, product_id={record.product_id}")

        return TargetRecord(
            auction_id=record.auction_id,
            product_id=record.product_id,
            product_name=record.product_name,
            product_category=record.product_category,
            max_price=self._truncate(record.max_price),
            auction_start_time=self._to_instant(record.auction_start_time),
            auction_end_time=self._to_instant(record.auction_end_time),
            change_timestamp=self._to_instant(record.last_modified),
        )

    def transform_batch(self, records: Iterable[SourceRecord]) -> List[TargetRecord]:
        return [self.transform(record) for record in records]

    @staticmethod
    def _truncate(value: Optional[Decimal]) -> Optional[int]:
        """int() on a Decimal drops the fraction (toward zero), it never rounds."""
        if value is None:
            return None
        return int(value)

    def _to_instant(self, value: Optional[datetime]) -> Optional[datetime]:
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=self.source_timezone)
        return value.astimezone(timezone.utc)
