"""Tracked query registration.

Registering a URL validates it, runs one trial extraction and stores the
query together with the ads the trial returned. Seeding the seen ads means
the first polling cycle only announces ads published after registration.
"""

from dataclasses import dataclass, field
from typing import List, Optional
from uuid import UUID

import structlog

from adwatch.config import settings
from adwatch.core.exceptions import DuplicateQueryError, QueryLimitExceeded, ValidationError
from adwatch.models.tracked_query import TrackedQuery
from adwatch.scrapers.base import NormalizedAd
from adwatch.scrapers.classifier import validate_query_url
from adwatch.scrapers.factory import ExtractorRegistry
from adwatch.services.query_store import QueryStore

logger = structlog.get_logger(__name__)


PREVIEW_SIZE = 5


@dataclass
class Preview:
    """Ads a URL currently yields, without persisting anything."""

    url: str
    platform: str
    ads_found: int
    ads: List[NormalizedAd] = field(default_factory=list)


@dataclass
class RegistrationResult:
    query: TrackedQuery
    ads_found: int
    preview: List[NormalizedAd] = field(default_factory=list)


def most_recent(ads: List[NormalizedAd], limit: int = PREVIEW_SIZE) -> List[NormalizedAd]:
    """Newest ads first; ads without a publication time keep upstream order at the end."""
    dated = [ad for ad in ads if ad.published_at]
    undated = [ad for ad in ads if not ad.published_at]
    dated.sort(key=lambda ad: ad.published_at.timestamp(), reverse=True)
    return (dated + undated)[:limit]


class RegistrationService:
    """Validates and stores new tracked queries.

    Args:
        store: Persistence gateway
        registry: Extractor registry
        max_queries: Per-subscriber query limit
    """

    def __init__(self, store: QueryStore, registry: ExtractorRegistry, max_queries: Optional[int] = None):
        self.store = store
        self.registry = registry
        self.max_queries = max_queries or settings.MAX_QUERIES_PER_SUBSCRIBER
        self.logger = logger.bind(service="registration_service")

    async def preview(self, url: str) -> Preview:
        """Run a one-shot extraction for a URL.

        Raises:
            ValidationError: The URL is not a supported search page
            ExtractionError: The trial extraction failed
        """
        url = url.strip()
        check = validate_query_url(url)
        if not check.valid:
            raise ValidationError(check.error, platform=check.platform)

        extractor = self.registry.require(check.platform)
        ads = await extractor.extract(url)

        self.logger.info("preview_extracted", platform=check.platform, ads_found=len(ads))
        return Preview(url=url, platform=check.platform, ads_found=len(ads), ads=ads)

    async def register(self, owner_id: UUID, url: str) -> RegistrationResult:
        """Register a search URL for a subscriber.

        Args:
            owner_id: Subscriber id
            url: Search page URL

        Returns:
            RegistrationResult with the stored query and a preview of recent ads

        Raises:
            ValidationError: The URL is not a supported search page
            QueryLimitExceeded: The subscriber already tracks the maximum
            DuplicateQueryError: The subscriber already tracks this URL
            ExtractionError: The trial extraction failed
        """
        url = url.strip()
        check = validate_query_url(url)
        if not check.valid:
            raise ValidationError(check.error, platform=check.platform)

        if await self.store.count_queries(owner_id) >= self.max_queries:
            raise QueryLimitExceeded(self.max_queries)

        if await self.store.find_query(owner_id, url):
            raise DuplicateQueryError(url)

        preview = await self.preview(url)
        query = await self.store.create_query(owner_id, url, preview.platform, initial_ads=preview.ads)

        self.logger.info(
            "query_registered",
            query_id=str(query.id),
            owner_id=str(owner_id),
            platform=preview.platform,
            ads_found=preview.ads_found,
        )
        return RegistrationResult(
            query=query,
            ads_found=preview.ads_found,
            preview=most_recent(preview.ads),
        )
