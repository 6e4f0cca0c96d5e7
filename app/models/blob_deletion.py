"""
Pending blob deletions (outbox)

A row exists for every product image whose best-effort deletion from the
object store failed. The blob cleanup job retries them.
"""
from datetime import datetime, timezone
from sqlalchemy import Column, Integer, String, DateTime, Text

from app.core.database import Base


class PendingBlobDeletion(Base):
    __tablename__ = "pending_blob_deletions"

    id = Column(Integer, primary_key=True, index=True)
    url = Column(String, nullable=False)
    key = Column(String, nullable=False, index=True)
    attempts = Column(Integer, nullable=False, default=1)
    last_error = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    last_attempt_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
