"""TrackedQuery model: a saved search URL polled for new ads."""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from adwatch.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin

if TYPE_CHECKING:
    from adwatch.models.ad import Ad
    from adwatch.models.subscriber import Subscriber


class TrackedQuery(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A subscriber's search URL together with its polling state."""

    __tablename__ = "tracked_queries"

    owner_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("subscribers.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    url: Mapped[str] = mapped_column(Text, nullable=False)
    platform: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        comment="Platform: 'kufar', 'onliner', 'av'",
    )

    # Polling state
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    failure_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment="Consecutive failed polls; reset by any successful poll",
    )
    last_polled_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    owner: Mapped["Subscriber"] = relationship(back_populates="queries")
    ads: Mapped[list["Ad"]] = relationship(
        back_populates="query", cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("idx_tracked_queries_active", "is_active"),
    )

    def __repr__(self) -> str:
        return (
            f"<TrackedQuery(id={self.id}, platform='{self.platform}', "
            f"active={self.is_active}, failures={self.failure_count})>"
        )
