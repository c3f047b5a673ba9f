from ingestion.transformers.auction_transformer import AuctionTransformer

__all__ = ["AuctionTransformer"]
