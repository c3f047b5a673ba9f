import logging
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from typing import Callable, Optional
from core.config import Settings, settings as default_settings
from core.database import async_session_maker
from ingestion.jobs.auction_winning_bid import build_runner
from ingestion.runner import ETLRunner, RunResult

logger = logging.getLogger(__name__)


class ETLScheduler:
    """Runs the winning-bid job on a cron schedule, one run at a time."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
        runner_factory: Optional[Callable[[], ETLRunner]] = None,
    ):
        self.settings = settings or default_settings
        self.session_factory = session_factory or async_session_maker
        self.runner_factory = runner_factory or (
            lambda: build_runner(self.settings, self.session_factory)
        )
        self.scheduler = AsyncIOScheduler()
        self.last_result: Optional[RunResult] = None

    async def run_etl_job(self) -> Optional[RunResult]:
        """Job to run ETL pipeline"""
        job_name = self.settings.ETL_JOB_NAME
        logger.info(f"Scheduler: Starting ETL job '{job_name}'")
        try:
            runner = self.runner_factory()
            result = await runner.run(job_name)
        except Exception as e:
            logger.error(f"Scheduler: ETL job '{job_name}' could not run - {e}")
            return None

        self.last_result = result
        if result.succeeded:
            logger.info(f"Scheduler: ETL job '{job_name}' succeeded ({result.records_loaded} rows loaded)")
        else:
            logger.error(f"Scheduler: ETL job '{job_name}' failed - {result.error}")
        return result

    def start(self):
        """Start the scheduler"""
        self.scheduler.add_job(
            self.run_etl_job,
            trigger=CronTrigger.from_crontab(self.settings.ETL_CRON),
            id="etl_job",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self.scheduler.start()
        logger.info(f"ETL Scheduler started (cron '{self.settings.ETL_CRON}')")

    def stop(self):
        if self.scheduler.running:
            self.scheduler.shutdown()
        logger.info("ETL Scheduler stopped")
