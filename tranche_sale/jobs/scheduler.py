"""
Job Scheduler
=============
APScheduler-based scheduler for sale reports.
"""

import asyncio

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
import structlog

from tranche_sale.config import settings
from tranche_sale.database import close_db, init_db
from tranche_sale.jobs.reports import SaleReportJob

logger = structlog.get_logger()


class JobScheduler:
    """
    Manages scheduled background jobs.
    """

    def __init__(self):
        self.scheduler = AsyncIOScheduler()
        self.report_job = SaleReportJob(output_dir=settings.report_output_dir)

    async def run_progress_report(self) -> None:
        """Generate the daily sale progress report."""
        try:
            logger.info("Running scheduled sale progress report")
            path = await self.report_job.generate_progress_report()
            logger.info("Sale progress report completed", path=str(path))
        except Exception as e:
            logger.error("Sale progress report failed", error=str(e))

    def setup(self) -> None:
        """Configure scheduled jobs."""
        self.scheduler.add_job(
            self.run_progress_report,
            CronTrigger(hour=settings.report_hour, minute=0),
            id="sale_progress_report",
            name="Daily Sale Progress Report",
            replace_existing=True,
        )

        logger.info("Scheduler configured", report_hour=settings.report_hour)

    def start(self) -> None:
        """Start the scheduler."""
        self.scheduler.start()
        logger.info("Scheduler started")

    def stop(self) -> None:
        """Stop the scheduler."""
        self.scheduler.shutdown()
        logger.info("Scheduler stopped")


async def run_scheduler() -> None:
    """Run the job scheduler."""
    await init_db()

    scheduler = JobScheduler()
    scheduler.setup()
    scheduler.start()

    try:
        # Keep the scheduler running
        while True:
            await asyncio.sleep(60)
    except (KeyboardInterrupt, SystemExit, asyncio.CancelledError):
        scheduler.stop()
        await close_db()


def run() -> None:
    """Entry point for the scheduler worker."""
    if not settings.scheduler_enabled:
        logger.warning("Scheduler is disabled")
        return

    logger.info("Starting Tranche Sale Scheduler")
    asyncio.run(run_scheduler())


if __name__ == "__main__":
    run()
