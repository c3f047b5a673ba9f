from sqlalchemy import DateTime
from sqlalchemy.dialects import mysql
from sqlalchemy.orm import declarative_base
import enum

Base = declarative_base()

# Microsecond DATETIME on MySQL; plain DATETIME there rounds fractional seconds
PreciseDateTime = DateTime().with_variant(mysql.DATETIME(fsp=6), "mysql")


# ============================================================================
# ENUMS
# ============================================================================

class ETLStatus(str, enum.Enum):
    """ETL run status"""
    PENDING = "pending"
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"
