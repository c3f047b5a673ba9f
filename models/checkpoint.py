from sqlalchemy import Column, String
from datetime import datetime
from models.base import Base, PreciseDateTime


class JobCheckpoint(Base):
    """
    Watermark row per batch job.

    Purpose:
    - Remember the highest source change time durably loaded into the warehouse
    - Bound the next run's extraction window

    Design:
    - One row per job, keyed by job name
    - The row must exist before the first run; runs only ever UPDATE it
    - last_processed_timestamp is stored as source wall-clock time (no zone),
      matching the GREATEST(modified_at) expression it is compared against
    - NULL means the job has never completed a load
    """
    __tablename__ = "batch_job_metadata"

    job_name = Column(String(100), primary_key=True)
    last_processed_timestamp = Column(PreciseDateTime, nullable=True)
    updated_at = Column(PreciseDateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)
