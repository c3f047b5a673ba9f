from ingestion.extractors.keyset_reader import (
    KeysetPagingReader,
    PageCursor,
    ReaderState,
    WATERMARK_SENTINEL,
)
from ingestion.extractors.auction_row_mapper import map_auction_row

__all__ = [
    "KeysetPagingReader",
    "PageCursor",
    "ReaderState",
    "WATERMARK_SENTINEL",
    "map_auction_row",
]
