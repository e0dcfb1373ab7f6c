"""Subscriber model: the owner of tracked queries and recipient of notifications."""

from typing import TYPE_CHECKING, Optional

from sqlalchemy import BigInteger, Boolean, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from adwatch.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin

if TYPE_CHECKING:
    from adwatch.models.tracked_query import TrackedQuery


class Subscriber(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A messaging-transport user that owns saved searches."""

    __tablename__ = "subscribers"

    chat_id: Mapped[int] = mapped_column(
        BigInteger,
        unique=True,
        index=True,
        nullable=False,
        comment="Transport address (Telegram chat id)",
    )
    username: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    is_blocked: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        comment="Set when the transport reports the recipient revoked access",
    )

    queries: Mapped[list["TrackedQuery"]] = relationship(
        back_populates="owner", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Subscriber(id={self.id}, chat_id={self.chat_id})>"
