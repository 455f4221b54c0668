"""Job scheduling for the marketplace intelligence engine."""

from typing import TYPE_CHECKING

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger
from loguru import logger

if TYPE_CHECKING:
    from .coordinator import JobCoordinator


class JobScheduler:
    """Manages the scheduled scoring jobs.

    Default schedule:
    - Product rankings: Every 6 hours
    - Inventory forecast: Every hour
    - Seller financing: Daily at 2 AM
    """

    def __init__(self, coordinator: "JobCoordinator", config: dict):
        """Initialize job scheduler.

        Args:
            coordinator: Job coordinator instance
            config: Configuration dictionary
        """
        self.coordinator = coordinator
        self.config = config

        schedule_config = config.get("schedule", {})
        self.job_defaults = {
            "coalesce": True,
            "max_instances": schedule_config.get("max_instances_per_job", 1),
            "misfire_grace_time": schedule_config.get("misfire_grace_time_seconds", 300),
        }
        self.scheduler = AsyncIOScheduler(job_defaults=self.job_defaults)

    def configure_jobs(self):
        """Set up all scheduled jobs based on configuration."""
        schedule_config = self.config.get("schedule", {})

        rankings_hours = schedule_config.get("rankings_hours", 6)
        self.scheduler.add_job(
            self.coordinator.run_rankings,
            IntervalTrigger(hours=rankings_hours),
            id="rankings",
            name="Product Rankings",
            replace_existing=True,
            **self.job_defaults,
        )
        logger.info(f"Scheduled product rankings every {rankings_hours} hours")

        inventory_hours = schedule_config.get("inventory_hours", 1)
        self.scheduler.add_job(
            self.coordinator.run_inventory,
            IntervalTrigger(hours=inventory_hours),
            id="inventory",
            name="Inventory Forecast",
            replace_existing=True,
            **self.job_defaults,
        )
        logger.info(f"Scheduled inventory forecast every {inventory_hours} hours")

        financing_hour = schedule_config.get("financing_hour", 2)
        financing_minute = schedule_config.get("financing_minute", 0)
        self.scheduler.add_job(
            self.coordinator.run_financing,
            CronTrigger(hour=financing_hour, minute=financing_minute),
            id="financing",
            name="Seller Financing",
            replace_existing=True,
            **self.job_defaults,
        )
        logger.info(f"Scheduled seller financing daily at {financing_hour:02d}:{financing_minute:02d}")

    def start(self):
        """Start the scheduler."""
        logger.info("Starting job scheduler")
        self.scheduler.start()

    def stop(self):
        """Stop the scheduler."""
        logger.info("Stopping job scheduler")
        self.scheduler.shutdown()

    def get_jobs(self):
        """Get list of scheduled jobs."""
        return self.scheduler.get_jobs()
