"""
Blob cleanup scheduler

Retries queued product image deletions at a fixed interval. The heartbeat
is reported by /health so a stalled loop is visible.
"""
import asyncio
import logging
from datetime import datetime, timezone

from app.core.config import settings
from app.core.database import get_db_session
from app.services.blob_cleanup import retry_pending_deletions
from app.services.storage import get_storage

logger = logging.getLogger(__name__)

heartbeat: dict = {
    "last_run": None,
    "last_success": None,
    "records_processed": 0,
    "errors": 0,
}


async def run_blob_cleanup() -> dict:
    """Run one retry pass and update the heartbeat."""
    heartbeat["last_run"] = datetime.now(timezone.utc).isoformat()

    try:
        async with get_db_session() as db:
            stats = await retry_pending_deletions(
                db,
                get_storage(),
                batch_size=settings.BLOB_CLEANUP_BATCH_SIZE,
                max_attempts=settings.BLOB_CLEANUP_MAX_ATTEMPTS,
            )
    except Exception as e:
        heartbeat["errors"] += 1
        logger.error(f"Blob cleanup failed: {e}")
        return {}

    heartbeat["last_success"] = datetime.now(timezone.utc).isoformat()
    heartbeat["records_processed"] += stats.get("deleted", 0)
    if stats.get("attempted"):
        logger.info(
            f"Blob cleanup: deleted {stats['deleted']} of {stats['attempted']} queued object(s), "
            f"{stats['failed']} still failing"
        )
    return stats


async def blob_cleanup_scheduler():
    """Run blob cleanup at the configured interval until cancelled."""
    interval_seconds = settings.BLOB_CLEANUP_INTERVAL_MINUTES * 60
    logger.info(f"Blob cleanup scheduler started (interval: {settings.BLOB_CLEANUP_INTERVAL_MINUTES} minutes)")

    while True:
        await run_blob_cleanup()
        await asyncio.sleep(interval_seconds)
