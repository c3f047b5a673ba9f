from ingestion.loaders.bigquery_loader import CommitResult, LoadCommitter

__all__ = ["CommitResult", "LoadCommitter"]
