"""SQLAlchemy models for adwatch.

All models are imported here so metadata.create_all sees every table.
"""

from adwatch.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from adwatch.models.subscriber import Subscriber
from adwatch.models.tracked_query import TrackedQuery
from adwatch.models.ad import Ad

__all__ = [
    "Base",
    "TimestampMixin",
    "UUIDPrimaryKeyMixin",
    "Subscriber",
    "TrackedQuery",
    "Ad",
]
