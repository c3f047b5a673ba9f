"""
Script to run one incremental ETL execution outside the scheduler
"""

import asyncio
import sys
import os
import logging

# Add current directory to path to allow imports from core, models, etc.
sys.path.append(os.getcwd())

from core.config import settings
from core.database import async_session_maker, engine
from core.logging import setup_logging
from ingestion.jobs.auction_winning_bid import build_runner

logger = logging.getLogger(__name__)


async def run_etl() -> bool:
    """Run the configured job once; returns True on success"""
    try:
        runner = build_runner(settings, async_session_maker)
        logger.info(f"Running ETL for job: {settings.ETL_JOB_NAME}")
        result = await runner.run(settings.ETL_JOB_NAME)
    finally:
        await engine.dispose()

    if not result.succeeded:
        logger.error(f"ETL failed for {settings.ETL_JOB_NAME}: {result.error}")
        return False

    logger.info(
        f"ETL completed for {settings.ETL_JOB_NAME}: "
        f"Extracted={result.records_extracted}, "
        f"Staged={result.records_staged}, "
        f"Loaded={result.records_loaded}, "
        f"Watermark={result.watermark_after}"
    )
    return True


if __name__ == "__main__":
    setup_logging()
    ok = asyncio.run(run_etl())
    sys.exit(0 if ok else 1)
