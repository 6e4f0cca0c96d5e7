import pytest
from sqlalchemy import select

from app.models import PendingBlobDeletion
from app.services.blob_cleanup import record_failed_deletions, retry_pending_deletions
from app.services.storage import DeleteResult


async def _queue(db, *keys):
    failures = [
        DeleteResult(success=False, url=f"https://cdn.test/{key}", key=key, error="timeout")
        for key in keys
    ]
    return await record_failed_deletions(db, failures)


async def _pending(db):
    return (await db.execute(select(PendingBlobDeletion).order_by(PendingBlobDeletion.id))).scalars().all()


@pytest.mark.asyncio
async def test_record_failed_deletions_skips_entries_without_key(db):
    queued = await record_failed_deletions(db, [
        DeleteResult(success=False, url="https://cdn.test/products/a.png", key="products/a.png", error="boom"),
        DeleteResult(success=False, url="not a url", key=None, error="Unparseable object URL"),
    ])

    assert queued == 1
    rows = await _pending(db)
    assert [(r.key, r.attempts, r.last_error) for r in rows] == [("products/a.png", 1, "boom")]


@pytest.mark.asyncio
async def test_retry_removes_rows_that_succeed(db, storage, s3_client):
    await _queue(db, "products/a.png", "products/b.png")

    stats = await retry_pending_deletions(db, storage)

    assert stats == {"attempted": 2, "deleted": 2, "failed": 0}
    assert await _pending(db) == []
    assert s3_client.delete_object.call_count == 2


@pytest.mark.asyncio
async def test_retry_counts_attempts_and_gives_up(db, storage, s3_client):
    await _queue(db, "products/a.png")
    s3_client.delete_object.side_effect = RuntimeError("still down")

    first = await retry_pending_deletions(db, storage, max_attempts=3)
    second = await retry_pending_deletions(db, storage, max_attempts=3)
    third = await retry_pending_deletions(db, storage, max_attempts=3)

    assert first == {"attempted": 1, "deleted": 0, "failed": 1}
    assert second["failed"] == 1
    assert third == {"attempted": 0, "deleted": 0, "failed": 0}

    row = (await _pending(db))[0]
    assert row.attempts == 3
    assert row.last_error == "still down"
