"""Onliner extractor.

Three surfaces share the onliner.by domain:

- r.onliner.by (realty): filters live in the URL fragment and map onto the
  public apartments search API (ak = rent, pk = sale).
- baraholka.onliner.by (flea market) and ab.onliner.by (cars): server
  rendered listing cards parsed from markup.
"""

import re
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import parse_qsl, urljoin, urlparse

import structlog
from bs4 import BeautifulSoup, Tag

from adwatch.core.exceptions import MalformedResponseError
from adwatch.scrapers.base import PLATFORM_ONLINER, NormalizedAd
from adwatch.scrapers.classifier import detect_platform, is_search_page
from adwatch.scrapers.utils.fetch import Fetcher
from adwatch.scrapers.utils.normalizer import (
    PRICE_NOT_SPECIFIED,
    PriceNormalizer,
    clean_text,
    parse_timestamp,
    split_location,
)


logger = structlog.get_logger(__name__)


class OnlinerExtractor:
    """Extractor for Onliner realty, flea market and car listings."""

    platform = PLATFORM_ONLINER

    REALTY_API = {
        "ak": "https://ak.api.onliner.by/search/apartments",
        "pk": "https://pk.api.onliner.by/search/apartments",
    }
    REALTY_ITEM_URL = "https://r.onliner.by/{section}/apartments/{id}"
    REALTY_PAGE_SIZE = 50

    # Realty filters forwarded to the API; everything else in the fragment is ignored
    REALTY_PARAMS = (
        "rent_type[]",
        "number_of_rooms[]",
        "price[min]",
        "price[max]",
        "currency",
        "only_owner",
        "metro[]",
        "bounds[lb][lat]",
        "bounds[lb][long]",
        "bounds[rt][lat]",
        "bounds[rt][long]",
    )

    ROOM_LABELS = {
        "room": "Комната",
        "studio": "Студия",
        "1_room": "1-комнатная",
        "2_rooms": "2-комнатная",
        "3_rooms": "3-комнатная",
        "4_rooms": "4-комнатная",
        "5_rooms": "5-комнатная",
        "6_rooms": "6-комнатная",
    }

    CARD_SELECTOR = ".classified__item, .vehicle-item"
    CARD_LINK = "a.classified__link, a.vehicle-item__link"
    CARD_TITLE = ".classified__title, .vehicle-item__title"
    CARD_PRICE = ".classified__price, .vehicle-item__price"
    CARD_IMAGE = "img.classified__image, img.vehicle-item__image"
    CARD_LOCATION = ".classified__location, .vehicle-item__location"

    _TRAILING_ID = re.compile(r"(\d+)/?$")

    def __init__(self, fetcher: Optional[Fetcher] = None):
        self.fetcher = fetcher or Fetcher(self.platform)
        self.logger = logger.bind(platform=self.platform)

    def validate_url(self, url: str) -> bool:
        return detect_platform(url) == self.platform and is_search_page(url, self.platform)

    async def extract(self, url: str) -> List[NormalizedAd]:
        """Extract ads from an Onliner search page.

        Args:
            url: Realty, flea market or car search URL

        Returns:
            Normalized ads; empty when the page has no listings
        """
        host = (urlparse(url).hostname or "").lower()

        if host.startswith("r."):
            ads = await self._extract_realty(url)
        else:
            ads = await self._extract_cards(url)

        self.logger.info("onliner_extracted", url=url, count=len(ads))
        return ads

    # ------------------------------------------------------------------
    # Realty API
    # ------------------------------------------------------------------

    def build_realty_request(self, url: str) -> Tuple[str, str, List[Tuple[str, str]]]:
        """Map a realty page URL onto (section, API URL, query params).

        Filters are read from both the query string and the fragment, since
        the realty map keeps its state after `#`.
        """
        parsed = urlparse(url)
        section = "pk" if parsed.path.startswith("/pk") else "ak"

        pairs = parse_qsl(parsed.query) + parse_qsl(parsed.fragment)
        params = [(k, v) for k, v in pairs if k in self.REALTY_PARAMS and v]
        params += [("page", "1"), ("limit", str(self.REALTY_PAGE_SIZE))]

        return section, self.REALTY_API[section], params

    async def _extract_realty(self, url: str) -> List[NormalizedAd]:
        section, api_url, params = self.build_realty_request(url)
        payload = await self.fetcher.fetch_json(api_url, params=params)

        if not isinstance(payload, dict):
            raise MalformedResponseError(self.platform, "realty response is not an object", url=url)

        apartments = payload.get("apartments")
        if apartments is None:
            return []
        if not isinstance(apartments, list):
            raise MalformedResponseError(self.platform, "`apartments` is not a list", url=url)

        ads: List[NormalizedAd] = []
        for apartment in apartments:
            if isinstance(apartment, dict):
                ad = self._normalize_apartment(apartment, section)
                if ad:
                    ads.append(ad)
        return ads

    def _normalize_apartment(self, apartment: Dict[str, Any], section: str) -> Optional[NormalizedAd]:
        apartment_id = apartment.get("id")
        if apartment_id is None:
            return None

        location_data = apartment.get("location")
        if isinstance(location_data, dict):
            location_data = location_data.get("user_address") or location_data.get("address")
        location, address = split_location(location_data if isinstance(location_data, str) else None)

        price_data = apartment.get("price")
        price = None
        if isinstance(price_data, dict):
            price = PriceNormalizer.from_major_units(price_data.get("amount"), price_data.get("currency"))

        photo = apartment.get("photo")
        image_url = photo.get("url") if isinstance(photo, dict) else photo

        return NormalizedAd(
            external_id=f"onliner_realty_{apartment_id}",
            title=self._apartment_title(apartment),
            price=price or PRICE_NOT_SPECIFIED,
            image_url=image_url or None,
            ad_url=apartment.get("url") or self.REALTY_ITEM_URL.format(section=section, id=apartment_id),
            location=location,
            address=address,
            published_at=parse_timestamp(apartment.get("created_at") or apartment.get("last_time_up")),
        )

    def _apartment_title(self, apartment: Dict[str, Any]) -> str:
        parts: List[str] = []

        rent_type = apartment.get("rent_type")
        rooms = apartment.get("number_of_rooms")
        if rent_type in self.ROOM_LABELS:
            parts.append(self.ROOM_LABELS[rent_type])
        elif rooms:
            parts.append(f"{rooms}-комнатная")
        else:
            parts.append("Квартира")

        area = apartment.get("area")
        total_area = area.get("total") if isinstance(area, dict) else None
        if total_area:
            parts.append(f"{total_area} м²")

        floor = apartment.get("floor")
        if floor:
            parts.append(f"{floor} этаж")

        return ", ".join(parts)

    # ------------------------------------------------------------------
    # Flea market / cars markup
    # ------------------------------------------------------------------

    async def _extract_cards(self, url: str) -> List[NormalizedAd]:
        html = await self.fetcher.fetch_text(url)
        soup = BeautifulSoup(html, "html.parser")

        ads: List[NormalizedAd] = []
        for card in soup.select(self.CARD_SELECTOR):
            ad = self._normalize_card(card, url)
            if ad:
                ads.append(ad)
        return ads

    def _normalize_card(self, card: Tag, page_url: str) -> Optional[NormalizedAd]:
        link = card.select_one(self.CARD_LINK)
        href = link.get("href") if link else None
        if not href:
            return None

        ad_url = urljoin(page_url, href)
        card_id = self._card_id(ad_url)
        if not card_id:
            self.logger.debug("onliner_card_without_id", href=href)
            return None

        title_el = card.select_one(self.CARD_TITLE)
        title = clean_text(title_el.get_text()) if title_el else clean_text(link.get_text())
        if not title:
            return None

        price_el = card.select_one(self.CARD_PRICE)
        price = clean_text(price_el.get_text()) if price_el else ""

        image_el = card.select_one(self.CARD_IMAGE)
        image_url = None
        if image_el:
            src = image_el.get("src") or image_el.get("data-src")
            image_url = urljoin(page_url, src) if src else None

        location_el = card.select_one(self.CARD_LOCATION)
        location, address = split_location(clean_text(location_el.get_text()) if location_el else None)

        return NormalizedAd(
            external_id=f"onliner_{card_id}",
            title=title,
            price=price or PRICE_NOT_SPECIFIED,
            image_url=image_url,
            ad_url=ad_url,
            location=location,
            address=address,
        )

    def _card_id(self, ad_url: str) -> Optional[str]:
        """Trailing numeric path segment, or the topic id of viewtopic.php?t=<id>."""
        parsed = urlparse(ad_url)
        match = self._TRAILING_ID.search(parsed.path)
        if match:
            return match.group(1)
        topic = dict(parse_qsl(parsed.query)).get("t")
        return topic if topic and topic.isdigit() else None
