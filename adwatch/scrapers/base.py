"""Extraction contract shared by every site extractor.

Extractors are independent classes selected through the registry by
platform identifier. They do not share a base class; each one composes a
Fetcher for network access and satisfies the Extractor protocol below.
"""

from dataclasses import dataclass, asdict
from datetime import datetime
from typing import List, Optional, Protocol, runtime_checkable


PLATFORM_KUFAR = "kufar"
PLATFORM_ONLINER = "onliner"
PLATFORM_AV = "av"

PLATFORMS = (PLATFORM_KUFAR, PLATFORM_ONLINER, PLATFORM_AV)


@dataclass
class NormalizedAd:
    """Site-agnostic ad record returned by all extractors."""

    external_id: str  # Platform-scoped id, unique per tracked query
    title: str
    ad_url: str
    description: Optional[str] = None
    price: Optional[str] = None  # Display string, e.g. "1500 BYN"
    image_url: Optional[str] = None
    location: Optional[str] = None  # City / region
    address: Optional[str] = None  # Street-level address, only when upstream provides one
    published_at: Optional[datetime] = None

    def __post_init__(self):
        """Reject ads missing an id, title or link."""
        if not self.external_id:
            raise ValueError("external_id is required")
        if not self.title:
            raise ValueError("title is required")
        if not self.ad_url:
            raise ValueError("ad_url is required")

    def to_dict(self) -> dict:
        return asdict(self)


@runtime_checkable
class Extractor(Protocol):
    """Contract implemented by each site extractor."""

    platform: str

    def validate_url(self, url: str) -> bool:
        """Return True when the URL is a search page of this site.

        Pure and side-effect free. Single-ad permalinks on the right host
        must be rejected.
        """
        ...

    async def extract(self, url: str) -> List[NormalizedAd]:
        """Fetch a search page and turn it into normalized ads.

        Returns an empty list when the page has no results.

        Raises:
            TransientNetworkError: network failure after retries
            MalformedResponseError: data container present but structurally wrong
        """
        ...
