"""
Pydantic schemas for the source row and the warehouse row
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class SourceRecord(BaseModel):
    """
    One row of ``auctions JOIN product`` as read from MySQL.

    ``last_modified`` is GREATEST(a.modified_at, p.modified_at): the change
    timestamp the pipeline sorts and filters on.
    """

    model_config = ConfigDict(frozen=True)

    auction_id: int
    product_id: Optional[int] = None
    product_name: Optional[str] = None
    product_category: Optional[str] = None
    max_price: Optional[Decimal] = None
    auction_start_time: Optional[datetime] = None
    auction_end_time: Optional[datetime] = None
    last_modified: Optional[datetime] = None


class TargetRecord(BaseModel):
    """
    Row shaped for the BigQuery ``auctions_winning_bid`` table.

    Field declaration order is the positional column order of the staged
    CSV and must match WAREHOUSE_COLUMNS. ``change_timestamp`` is kept only
    to advance the watermark; it is never serialized.
    """

    model_config = ConfigDict(frozen=True)

    auction_id: Optional[int] = None
    product_id: Optional[int] = None
    product_name: Optional[str] = None
    product_category: Optional[str] = None
    max_price: Optional[int] = None
    auction_start_time: Optional[datetime] = None
    auction_end_time: Optional[datetime] = None
    change_timestamp: Optional[datetime] = Field(default=None, exclude=True)


# Destination schema, in serialized column order: (name, BigQuery type)
WAREHOUSE_COLUMNS: List[Tuple[str, str]] = [
    ("auction_id", "INT64"),
    ("product_id", "INT64"),
    ("product_name", "STRING"),
    ("product_category", "STRING"),
    ("max_price", "INT64"),
    ("auction_start_time", "TIMESTAMP"),
    ("auction_end_time", "TIMESTAMP"),
]
