"""
Blob Cleanup Outbox

Product image deletions are best-effort inside the request. When one fails,
the object key lands here and the blob cleanup job retries it later, so an
orphaned image is a delay rather than a permanent leak.
"""
import logging
from datetime import datetime, timezone
from typing import Dict, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.blob_deletion import PendingBlobDeletion
from app.services.storage import DeleteResult, StorageService

logger = logging.getLogger(__name__)


async def record_failed_deletions(db: AsyncSession, failures: Sequence[DeleteResult]) -> int:
    """
    Queue failed deletions for retry.

    Runs after the product write has been committed; a failure here is
    logged and the blobs stay orphaned. Returns the number of rows queued.
    """
    queued = 0
    for failure in failures:
        if not failure.key:
            logger.error(f"Cannot queue deletion without an object key: {failure.url}")
            continue
        db.add(PendingBlobDeletion(
            url=failure.url or failure.key,
            key=failure.key,
            attempts=1,
            last_error=(failure.error or "")[:1000] or None,
        ))
        queued += 1

    if not queued:
        return 0

    try:
        await db.commit()
    except Exception as e:
        await db.rollback()
        logger.error(f"Could not queue {queued} failed blob deletion(s): {e}")
        return 0

    logger.warning(f"Queued {queued} failed blob deletion(s) for retry")
    return queued


async def retry_pending_deletions(
    db: AsyncSession,
    storage: StorageService,
    batch_size: int = 100,
    max_attempts: int = 10,
) -> Dict[str, int]:
    """
    Retry queued deletions once.

    Successful deletions remove their row; failures bump attempts. Rows that
    reached max_attempts are skipped and left for manual inspection.

    Returns:
        dict with counts of attempted, deleted and failed entries
    """
    stats = {"attempted": 0, "deleted": 0, "failed": 0}

    result = await db.execute(
        select(PendingBlobDeletion)
        .where(PendingBlobDeletion.attempts < max_attempts)
        .order_by(PendingBlobDeletion.id)
        .limit(batch_size)
    )
    pending = result.scalars().all()

    for entry in pending:
        stats["attempted"] += 1
        outcome = await storage.delete_object(entry.key)
        if outcome.success:
            await db.delete(entry)
            stats["deleted"] += 1
        else:
            entry.attempts += 1
            entry.last_error = (outcome.error or "")[:1000] or None
            entry.last_attempt_at = datetime.now(timezone.utc)
            stats["failed"] += 1
            if entry.attempts >= max_attempts:
                logger.error(
                    f"Giving up on blob {entry.key} after {entry.attempts} attempts: {entry.last_error}"
                )

    await db.commit()
    return stats
