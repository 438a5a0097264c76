# file: scripts/notification_cleanup.py

import asyncio
import logging
from datetime import datetime

from app.config import CLEANUP_INTERVAL_SECONDS, LOG_LEVEL, NOTIFICATION_RETENTION_DAYS
from app.database.connection import get_db_session
from app.services.notification_service import NotificationService

logger = logging.getLogger(__name__)


async def run_cleanup(days: int = NOTIFICATION_RETENTION_DAYS) -> int:
    """Soft-deletes notifications past the retention window."""
    logger.info("Running notification cleanup (retention=%d days)...", days)
    async with get_db_session() as db:
        return await NotificationService(db).cleanup_old_notifications(days)


async def main_cleanup_loop():
    """The main event loop for the cleanup daemon."""
    while True:
        logger.info("--- [%s] STARTING NEW CLEANUP CYCLE ---", datetime.now())
        try:
            await run_cleanup()
        except Exception:
            logger.exception("An error occurred in the cleanup loop")

        logger.info("--- Cleanup cycle finished. Waiting %d seconds. ---", CLEANUP_INTERVAL_SECONDS)
        await asyncio.sleep(CLEANUP_INTERVAL_SECONDS)


if __name__ == "__main__":
    logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")
    logger.info("Starting notification cleanup...")
    asyncio.run(main_cleanup_loop())
