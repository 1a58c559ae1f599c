"""
Cache entry model.

A small key/value table with expiry, used for the cross-request
day state: the business-day boundary, per-day acknowledgement
flags and cached revenue figures. An expired row reads as absent.
Keeping it in the database lets the boundary key be row-locked
while a day is being closed.
"""

from datetime import datetime

from sqlalchemy import String, DateTime, JSON
from sqlalchemy.orm import Mapped, mapped_column

from hospital_ledger.models.base import Base


class CacheEntry(Base):
    __tablename__ = "cache_entries"

    key: Mapped[str] = mapped_column(String(150), primary_key=True)
    value: Mapped[object] = mapped_column(JSON, nullable=True)
    expires_at: Mapped[datetime | None] = mapped_column(
        DateTime, nullable=True, index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.now, onupdate=datetime.now
    )

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and self.expires_at <= now

    def __repr__(self) -> str:
        return f"<CacheEntry {self.key} expires={self.expires_at}>"
