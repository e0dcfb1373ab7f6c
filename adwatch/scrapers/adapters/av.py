"""av.by car listings extractor.

cars.av.by is a Next.js application; search results are embedded in the
`__NEXT_DATA__` data island under props.initialState.filter.main.adverts.
"""

from typing import Any, Dict, List, Optional

import structlog

from adwatch.core.exceptions import MalformedResponseError
from adwatch.scrapers.base import PLATFORM_AV, NormalizedAd
from adwatch.scrapers.classifier import detect_platform, is_search_page
from adwatch.scrapers.utils.embedded_state import extract_element_json, walk
from adwatch.scrapers.utils.fetch import Fetcher
from adwatch.scrapers.utils.normalizer import (
    PRICE_NOT_SPECIFIED,
    PriceNormalizer,
    clean_text,
    parse_timestamp,
)


logger = structlog.get_logger(__name__)


class AvExtractor:
    """Extractor for cars.av.by search pages."""

    platform = PLATFORM_AV

    BASE_URL = "https://cars.av.by"
    DATA_ISLAND_ID = "__NEXT_DATA__"
    ADVERTS_PATH = ("props", "initialState", "filter", "main", "adverts")

    # Title is composed from these properties in order
    TITLE_PROPERTIES = ("brand", "model", "generation")
    PRICE_CURRENCIES = (("usd", "USD"), ("byn", "BYN"))

    def __init__(self, fetcher: Optional[Fetcher] = None):
        self.fetcher = fetcher or Fetcher(self.platform)
        self.logger = logger.bind(platform=self.platform)

    def validate_url(self, url: str) -> bool:
        return detect_platform(url) == self.platform and is_search_page(url, self.platform)

    async def extract(self, url: str) -> List[NormalizedAd]:
        html = await self.fetcher.fetch_text(url)

        data = extract_element_json(html, self.DATA_ISLAND_ID)
        if data is None:
            self.logger.info("av_data_island_missing", url=url)
            return []

        adverts = walk(data, self.ADVERTS_PATH)
        if adverts is None:
            return []
        if not isinstance(adverts, list):
            raise MalformedResponseError(self.platform, "`adverts` is not a list", url=url)

        ads: List[NormalizedAd] = []
        for advert in adverts:
            if isinstance(advert, dict):
                ad = self._normalize(advert)
                if ad:
                    ads.append(ad)

        self.logger.info("av_extracted", url=url, count=len(ads))
        return ads

    def _normalize(self, advert: Dict[str, Any]) -> Optional[NormalizedAd]:
        advert_id = advert.get("id")
        if advert_id is None:
            return None

        properties = self._properties(advert.get("properties"))
        title = " ".join(properties[name] for name in self.TITLE_PROPERTIES if properties.get(name))
        year = properties.get("year")
        if title and year:
            title = f"{title}, {year}"

        ad_url = advert.get("publicUrl") or f"/{advert_id}"
        if ad_url.startswith("/"):
            ad_url = f"{self.BASE_URL}{ad_url}"

        return NormalizedAd(
            external_id=f"av_{advert_id}",
            title=title or f"Объявление {advert_id}",
            description=clean_text(advert.get("description")) or None,
            price=self._price(advert.get("price")),
            image_url=self._image(advert.get("photos")),
            ad_url=ad_url,
            location=clean_text(advert.get("locationName")) or None,
            published_at=parse_timestamp(advert.get("publishedAt") or advert.get("refreshedAt")),
        )

    @staticmethod
    def _properties(items: Any) -> Dict[str, str]:
        if not isinstance(items, list):
            return {}
        result: Dict[str, str] = {}
        for item in items:
            if isinstance(item, dict) and item.get("name") and item.get("value") is not None:
                result[item["name"]] = str(item["value"])
        return result

    def _price(self, price: Any) -> str:
        if isinstance(price, dict):
            for key, currency in self.PRICE_CURRENCIES:
                entry = price.get(key)
                if isinstance(entry, dict):
                    formatted = PriceNormalizer.from_major_units(entry.get("amount"), currency)
                    if formatted:
                        return formatted
        return PRICE_NOT_SPECIFIED

    @staticmethod
    def _image(photos: Any) -> Optional[str]:
        if not isinstance(photos, list) or not photos or not isinstance(photos[0], dict):
            return None
        first = photos[0]
        for size in ("medium", "big", "small"):
            variant = first.get(size)
            if isinstance(variant, dict) and variant.get("url"):
                return variant["url"]
        return None
