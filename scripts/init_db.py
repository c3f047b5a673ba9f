import asyncio
import logging
import sys
import os

# Add current directory to path to allow imports from core, models, etc.
sys.path.append(os.getcwd())

from core.config import settings
from core.database import async_session_maker, engine
from core.logging import setup_logging
from ingestion.checkpoint import WatermarkStore
from models.base import Base
# Import all models to ensure they are registered
from models.checkpoint import JobCheckpoint  # noqa: F401
from models.etl_run import ETLRun  # noqa: F401

logger = logging.getLogger(__name__)


async def init_database():
    logger.info("Connecting to database...")

    async with engine.begin() as conn:
        logger.info("Creating tables...")
        # Only the pipeline's own tables; the source tables are owned elsewhere
        await conn.run_sync(Base.metadata.create_all)
        logger.info("Tables created successfully.")

    store = WatermarkStore(async_session_maker, source_timezone=settings.SOURCE_TIMEZONE)
    if await store.register_job(settings.ETL_JOB_NAME):
        logger.info(f"Job '{settings.ETL_JOB_NAME}' registered with an empty watermark")
    else:
        logger.info(f"Job '{settings.ETL_JOB_NAME}' already registered")

    await engine.dispose()


if __name__ == "__main__":
    setup_logging()
    asyncio.run(init_database())
