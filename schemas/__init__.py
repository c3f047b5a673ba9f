"""
Pydantic schemas for data validation and serialization.

Schemas:
    records: Source row (MySQL) and warehouse row (BigQuery) models, plus
        the destination column list
    api: Operational API request/response models

Usage:
    from schemas.records import SourceRecord, TargetRecord, WAREHOUSE_COLUMNS
    from schemas.api import HealthCheckResponse, StatsResponse
"""

__all__ = [
    "SourceRecord",
    "TargetRecord",
    "WAREHOUSE_COLUMNS",
    "HealthCheckResponse",
    "JobWatermarkInfo",
    "RunSummary",
    "StatsResponse",
]
