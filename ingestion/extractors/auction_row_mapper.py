"""
Maps rows of the auctions/product join onto SourceRecord
"""

from typing import Any, Mapping

from pydantic import ValidationError
from sqlalchemy import BigInteger, DateTime, Numeric, String

from core.exceptions import TransformationError
from schemas.records import SourceRecord

# Result column types of the derived table; drivers that return strings
# (sqlite) get converted, native drivers pass through.
AUCTION_COLUMN_TYPES = {
    "auction_id": BigInteger(),
    "product_id": BigInteger(),
    "product_name": String(),
    "product_category": String(),
    "max_price": Numeric(asdecimal=True),
    "auction_start_time": DateTime(),
    "auction_end_time": DateTime(),
    "last_modified": DateTime(),
}


def map_auction_row(row: Mapping[str, Any]) -> SourceRecord:
    try:
        return SourceRecord(
            auction_id=row["auction_id"],
            product_id=row.get("product_id"),
            product_name=row.get("product_name"),
            product_category=row.get("product_category"),
            max_price=row.get("max_price"),
            auction_start_time=row.get("auction_start_time"),
            auction_end_time=row.get("auction_end_time"),
            last_modified=row.get("last_modified"),
        )
    except (KeyError, ValidationError) as e:
        raise TransformationError(
            "Source row does not match the auction projection",
            context={"auction_id": row.get("auction_id")},
            original_exception=e
        )
