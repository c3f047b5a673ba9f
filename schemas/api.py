"""
Pydantic schemas for API request/response models
"""

from pydantic import BaseModel, ConfigDict, Field, model_validator
from typing import Optional, List
from datetime import datetime
from models.base import ETLStatus


# ============================================================================
# Health Check Schemas
# ============================================================================

class JobWatermarkInfo(BaseModel):
    """Watermark and latest run of one batch job"""
    model_config = ConfigDict(use_enum_values=True)

    job_name: str
    last_processed_timestamp: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    last_run_status: Optional[ETLStatus] = None
    last_run_at: Optional[datetime] = None
    last_error: Optional[str] = None


class HealthCheckResponse(BaseModel):
    """Health check response model"""
    status: str = Field("healthy", description="Overall system status: healthy, degraded, unhealthy")
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    database_connected: bool
    jobs: List[JobWatermarkInfo] = Field(default_factory=list)

    @model_validator(mode="after")
    def determine_status(self):
        """Determine overall health status"""
        if not self.database_connected:
            self.status = "unhealthy"
        elif any(job.last_run_status == ETLStatus.FAILED.value for job in self.jobs):
            self.status = "degraded"
        else:
            self.status = "healthy"
        return self

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "status": "healthy",
                "timestamp": "2024-01-15T10:30:00Z",
                "database_connected": True,
                "jobs": [
                    {
                        "job_name": "mysqlToBigQueryJob",
                        "last_processed_timestamp": "2024-01-15T09:00:00",
                        "last_run_status": "success",
                        "last_run_at": "2024-01-15T00:00:00"
                    }
                ]
            }
        }
    )


# ============================================================================
# Statistics Schemas
# ============================================================================

class RunSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True, use_enum_values=True)

    run_id: str
    job_name: str
    status: ETLStatus
    started_at: datetime
    completed_at: Optional[datetime] = None
    duration_seconds: Optional[float] = None
    records_extracted: int = 0
    records_staged: int = 0
    records_loaded: int = 0
    staged_objects: int = 0
    watermark_before: Optional[str] = None
    watermark_after: Optional[str] = None
    error_type: Optional[str] = None
    error_message: Optional[str] = None


class StatsResponse(BaseModel):
    """Statistics response model"""
    timestamp: datetime = Field(default_factory=datetime.utcnow)

    total_runs: int
    successful_runs: int
    failed_runs: int
    total_records_loaded: int

    last_success: Optional[datetime] = None
    last_failure: Optional[datetime] = None
    avg_run_duration_seconds: Optional[float] = None

    recent_runs: List[RunSummary] = Field(default_factory=list)
    request_id: Optional[str] = None
