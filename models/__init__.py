"""
SQLAlchemy ORM models for the pipeline's metadata tables.

Models:
    base: Base declarative class and the ETLStatus enum
    checkpoint: batch_job_metadata, one watermark row per job
    etl_run: Run history for auditing and the operational API

The source tables (auctions, product) are not modelled here; they are
only ever read through the keyset query planner's SQL.

Usage:
    from models.checkpoint import JobCheckpoint
    from models.etl_run import ETLRun
    from models.base import Base, ETLStatus
"""

__all__ = [
    "Base",
    "ETLStatus",
    "JobCheckpoint",
    "ETLRun",
]
