from sqlalchemy import Column, BigInteger, String, Enum, Float, Integer, Text, Index
from datetime import datetime
from models.base import Base, ETLStatus, PreciseDateTime

class ETLRun(Base):
    """
    Tracks metadata for each pipeline execution.

    Purpose:
    - Audit trail of all runs
    - Performance monitoring
    - Error tracking and debugging

    The pipeline never reads this table back; watermarks live in
    batch_job_metadata only.
    """
    __tablename__ = "etl_runs"

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    run_id = Column(String(36), unique=True, nullable=False, index=True)

    # Job identification
    job_name = Column(String(100), nullable=False, index=True)

    # Run metadata
    status = Column(Enum(ETLStatus), default=ETLStatus.PENDING, nullable=False, index=True)

    # Timestamps
    started_at = Column(PreciseDateTime, nullable=False, default=datetime.utcnow, index=True)
    completed_at = Column(PreciseDateTime, nullable=True)
    duration_seconds = Column(Float, nullable=True)

    # Statistics
    records_extracted = Column(Integer, default=0)
    records_staged = Column(Integer, default=0)
    records_loaded = Column(Integer, default=0)
    staged_objects = Column(Integer, default=0)

    # Error tracking
    error_type = Column(String(100), nullable=True)
    error_message = Column(Text, nullable=True)

    # Checkpoint info
    watermark_before = Column(String(64), nullable=True)
    watermark_after = Column(String(64), nullable=True)

    # Indexes
    __table_args__ = (
        Index("idx_etl_run_job_started", "job_name", "started_at"),
    )
