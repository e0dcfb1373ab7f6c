"""Pydantic schemas for the adwatch API."""

from adwatch.schemas.common import ApiResponse
from adwatch.schemas.health import HealthCheckResponse, SchedulerStatusResponse
from adwatch.schemas.ad import AdResponse
from adwatch.schemas.query import (
    PreviewRequest,
    PreviewResponse,
    QueryCreateRequest,
    RegistrationResponse,
    SubscriberResponse,
    SubscriberUpsertRequest,
    TrackedQueryResponse,
)

__all__ = [
    # Common
    "ApiResponse",
    # Health
    "HealthCheckResponse",
    "SchedulerStatusResponse",
    # Ads
    "AdResponse",
    # Queries
    "PreviewRequest",
    "PreviewResponse",
    "QueryCreateRequest",
    "RegistrationResponse",
    "SubscriberResponse",
    "SubscriberUpsertRequest",
    "TrackedQueryResponse",
]
