"""Ad model: a listing already seen for a tracked query."""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import DateTime, ForeignKey, Index, String, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from adwatch.models.base import Base, UUIDPrimaryKeyMixin

if TYPE_CHECKING:
    from adwatch.models.tracked_query import TrackedQuery


class Ad(UUIDPrimaryKeyMixin, Base):
    """A persisted ad.

    Rows are never updated. The (query_id, external_id) pair is unique per
    query rather than globally, because the same listing can be tracked by
    several subscribers' queries.
    """

    __tablename__ = "ads"

    query_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("tracked_queries.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    external_id: Mapped[str] = mapped_column(String(255), nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    price: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    image_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    ad_url: Mapped[str] = mapped_column(Text, nullable=False)
    location: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    published_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
        index=True,
    )

    query: Mapped["TrackedQuery"] = relationship(back_populates="ads")

    __table_args__ = (
        UniqueConstraint("query_id", "external_id", name="uq_ads_query_external"),
        Index("idx_ads_external_id", "external_id"),
    )

    def __repr__(self) -> str:
        return f"<Ad(id={self.id}, query_id={self.query_id}, external_id='{self.external_id}')>"
