"""
Incremental MySQL -> GCS -> BigQuery pipeline.

Modules:
    query_planner: Keyset pagination SQL over the joined source relation
    checkpoint: Per-job watermark in batch_job_metadata
    run_state: What one run accumulates between staging and commit
    run_history: Audit rows in etl_runs
    runner: Orchestrates one run (extract, transform, stage, commit)
    scheduler: APScheduler cron trigger for the runner

Subpackages:
    extractors: Keyset paging reader and row mapping
    transformers: Source row -> warehouse row
    staging: CSV rendering and GCS upload per chunk
    connectors: Thin wrappers over the GCS and BigQuery clients
    loaders: Load commit (load, then watermark, then cleanup)
    jobs: Concrete job wiring

Usage:
    from core.config import settings
    from core.database import async_session_maker
    from ingestion.jobs import build_runner

    runner = build_runner(settings, async_session_maker)
    result = await runner.run(settings.ETL_JOB_NAME)

    print(f"Loaded {result.records_loaded} records")

Error Handling:
    Every failure surfaces as a subclass of core.exceptions.ETLException.
    The runner catches them and returns a FAILED RunResult; the watermark
    only moves after a successful load, so the next run retries the same
    window.
"""

__all__ = [
    "ETLRunner",
    "RunResult",
    "KeysetQueryPlanner",
    "WatermarkStore",
]
