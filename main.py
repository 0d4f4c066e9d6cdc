"""
WorldPulse entry point
Runs correlation cycles over batches dropped by the ingestion layer.
"""

import asyncio

from loguru import logger

from worldpulse.datastore.engine import close_db, get_session_factory, init_db
from worldpulse.scheduler import CycleScheduler, json_file_provider
from worldpulse.settings import global_settings


async def log_signals(signals) -> None:
    for signal in signals:
        logger.info(
            f"[{signal.type.value}] {signal.title} "
            f"({signal.confidence:.2f}): {signal.description}"
        )


async def main() -> None:
    logger.info("Starting WorldPulse...")
    scheduler: CycleScheduler | None = None

    try:
        logger.info("Initializing database...")
        await init_db()
        logger.info("Database initialized successfully")

        scheduler = CycleScheduler(
            provider=json_file_provider(global_settings.batch_path),
            session_factory=get_session_factory(),
            on_signals=log_signals,
        )

        logger.info("Starting cycle scheduler...")
        scheduler.start()

        logger.info("Performing initial correlation cycle...")
        await scheduler.run_once()

        logger.info("WorldPulse is running. Press Ctrl+C to stop.")
        while True:
            await asyncio.sleep(60)

    except (KeyboardInterrupt, asyncio.CancelledError):
        logger.info("Received interrupt signal, shutting down...")
    except Exception as e:
        logger.error(f"Error in main loop: {e}")
    finally:
        if scheduler and scheduler.is_running():
            logger.info("Stopping cycle scheduler...")
            scheduler.stop()

        logger.info("Closing database connections...")
        await close_db()

        logger.info("WorldPulse stopped")


if __name__ == "__main__":
    asyncio.run(main())
