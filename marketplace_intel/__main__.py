"""Main entry point for the marketplace intelligence engine."""

import argparse
import asyncio
import sys

from loguru import logger

from .orchestrator.coordinator import JobCoordinator
from .orchestrator.scheduler import JobScheduler
from .utils.config import get_config
from .utils.logger import setup_logging


async def run_scheduler():
    """Run the job scheduler."""
    config = get_config()
    setup_logging()

    logger.info("=" * 80)
    logger.info("Marketplace Intelligence - Starting")
    logger.info("=" * 80)

    # Initialize coordinator and scheduler
    coordinator = JobCoordinator(config.model_dump())
    scheduler = JobScheduler(coordinator, config.model_dump())

    # Configure and start scheduler
    scheduler.configure_jobs()
    scheduler.start()

    logger.info("Scheduler started. Press Ctrl+C to stop.")

    try:
        # Keep running
        while True:
            await asyncio.sleep(1)
    except (KeyboardInterrupt, asyncio.CancelledError):
        logger.info("Shutting down...")
        scheduler.stop()


async def run_job(job: str, **kwargs) -> dict:
    """Run a single scoring job manually.

    Args:
        job: One of rankings, inventory, financing
        **kwargs: Subset arguments passed to the job

    Returns:
        Job summary counts
    """
    config = get_config()
    setup_logging()

    logger.info(f"Running {job} job")

    coordinator = JobCoordinator(config.model_dump())
    runners = {
        "rankings": coordinator.run_rankings,
        "inventory": coordinator.run_inventory,
        "financing": coordinator.run_financing,
    }
    summary = await runners[job](**kwargs)

    logger.info(f"{job.capitalize()} job completed: {summary}")
    return summary


def init_db():
    """Create the database tables."""
    from .storage.database import Database

    config = get_config()
    setup_logging()

    Database(config.database.url, echo=config.database.echo)
    logger.info("Database tables created")


def run_api():
    """Run the FastAPI server."""
    import uvicorn

    from .api.main import app

    config = get_config()
    setup_logging()

    logger.info("=" * 80)
    logger.info("Marketplace Intelligence API - Starting")
    logger.info("=" * 80)

    uvicorn.run(
        app,
        host=config.api.host,
        port=config.api.port,
        log_level="info",
    )


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Marketplace Intelligence")

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # Scheduler command
    subparsers.add_parser("scheduler", help="Run the job scheduler")

    # API command
    subparsers.add_parser("api", help="Run the API server")

    # Scoring commands
    rankings_parser = subparsers.add_parser("rankings", help="Recompute product rankings")
    rankings_parser.add_argument(
        "--product-id", dest="product_ids", action="append", help="Restrict to a product (repeatable)"
    )

    inventory_parser = subparsers.add_parser("inventory", help="Recompute inventory forecasts")
    inventory_parser.add_argument(
        "--product-id", dest="product_ids", action="append", help="Restrict to a product (repeatable)"
    )

    financing_parser = subparsers.add_parser("financing", help="Rescore sellers for financing")
    financing_parser.add_argument("--store-id", help="Restrict to a single store")

    # Database command
    subparsers.add_parser("init-db", help="Create the database tables")

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    try:
        if args.command == "scheduler":
            asyncio.run(run_scheduler())
        elif args.command == "api":
            run_api()
        elif args.command in ("rankings", "inventory"):
            asyncio.run(run_job(args.command, product_ids=args.product_ids))
        elif args.command == "financing":
            asyncio.run(run_job("financing", store_id=args.store_id))
        elif args.command == "init-db":
            init_db()
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
    except Exception as e:
        logger.exception(f"Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
