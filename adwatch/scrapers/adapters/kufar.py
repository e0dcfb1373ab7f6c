"""Kufar search API extractor.

Kufar search pages (kufar.by/l/...) are rendered from a public JSON search
API. The page URL is translated into API facets: path tokens and the
`gtsy` location hint become cat/typ/rgn codes via the lookup table, and a
handful of query parameters are forwarded unchanged.

Promoted ads are served by a separate endpoint; both are queried
concurrently and merged by ad id.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import parse_qs, urlparse

import structlog

from adwatch.core.exceptions import ExtractionError, MalformedResponseError
from adwatch.scrapers.base import PLATFORM_KUFAR, NormalizedAd
from adwatch.scrapers.classifier import detect_platform, is_search_page
from adwatch.scrapers.lookups import CityEntry, KufarLookup, get_kufar_lookup
from adwatch.scrapers.utils.fetch import Fetcher
from adwatch.scrapers.utils.normalizer import (
    PriceNormalizer,
    clean_text,
    filter_by_city,
    parse_timestamp,
    resolve_image_url,
)


logger = structlog.get_logger(__name__)


@dataclass
class KufarSearch:
    """Search API request derived from a Kufar page URL."""

    params: Dict[str, Any]
    city_token: Optional[str] = None
    city: Optional[CityEntry] = None  # Set when results must be narrowed client-side
    ignored_tokens: List[str] = field(default_factory=list)


class KufarExtractor:
    """Extractor for kufar.by search pages."""

    platform = PLATFORM_KUFAR

    SEARCH_URL = "https://api.kufar.by/search-api/v2/search/rendered-paginated"
    PROMOTED_URL = "https://api.kufar.by/search-api/v2/search/rendered-promoted"
    ITEM_URL = "https://www.kufar.by/item/{ad_id}"
    IMAGE_CDN = "https://rms.kufar.by/v1/gallery"

    PAGE_SIZE = 30
    SORT_NEWEST = "lst.d"

    # Forwarded verbatim from the page URL. `cur` is left out: combined with
    # `prc` the API returns zero matches. `sort` is always SORT_NEWEST.
    FORWARDED_PARAMS = ("query", "prc", "rms", "size")

    PRICE_FIELDS = (("price_byn", "BYN"), ("price_usd", "USD"))
    UNTITLED = "Без названия"

    def __init__(self, fetcher: Optional[Fetcher] = None, lookup: Optional[KufarLookup] = None):
        self.fetcher = fetcher or Fetcher(self.platform)
        self._lookup = lookup
        self.logger = logger.bind(platform=self.platform)

    @property
    def lookup(self) -> KufarLookup:
        if self._lookup is None:
            self._lookup = get_kufar_lookup()
        return self._lookup

    def validate_url(self, url: str) -> bool:
        return detect_platform(url) == self.platform and is_search_page(url, self.platform)

    async def extract(self, url: str) -> List[NormalizedAd]:
        """Query the search API for a Kufar page URL.

        Args:
            url: Kufar search page URL

        Returns:
            Normalized ads, newest first as served by the API

        Raises:
            TransientNetworkError: The main search request failed after retries
            MalformedResponseError: The API returned an unexpected structure
        """
        search = self.build_search(url)
        self.logger.debug(
            "kufar_search_built",
            params=search.params,
            city=search.city_token,
            ignored_tokens=search.ignored_tokens,
        )

        paginated, promoted = await asyncio.gather(
            self.fetcher.fetch_json(self.SEARCH_URL, params=search.params),
            self._fetch_promoted(search.params, url),
        )

        raw_ads = self._merge(
            self._ads_from(paginated, url),
            self._ads_from(promoted, url) if promoted is not None else [],
        )

        ads: List[NormalizedAd] = []
        localities: Dict[str, Optional[str]] = {}
        for raw in raw_ads:
            ad = self._normalize(raw)
            if ad:
                ads.append(ad)
                localities[ad.external_id] = self._locality(raw)

        if search.city is not None:
            before = len(ads)
            ads = filter_by_city(ads, search.city.names, locality=lambda ad: localities[ad.external_id])
            self.logger.info(
                "kufar_city_filter_applied",
                city=search.city_token,
                before=before,
                after=len(ads),
            )

        self.logger.info("kufar_extracted", url=url, count=len(ads))
        return ads

    def build_search(self, url: str) -> KufarSearch:
        """Translate a page URL into search API parameters."""
        parsed = urlparse(url)
        query = parse_qs(parsed.query)
        tokens = self._path_tokens(parsed.path)

        params: Dict[str, Any] = {
            "size": self.PAGE_SIZE,
            "sort": self.SORT_NEWEST,
            "lang": "ru",
        }

        for token in tokens:
            if token in self.lookup.categories:
                params.setdefault("cat", self.lookup.categories[token])
            elif token in self.lookup.transaction_types:
                params.setdefault("typ", self.lookup.transaction_types[token])

        explicit_region = query.get("rgn", [None])[0]
        gtsy = query.get("gtsy", [None])[0]
        region, city_token, city = self.resolve_region(tokens, gtsy, explicit_region)
        if region:
            params["rgn"] = region

        for key in self.FORWARDED_PARAMS:
            values = query.get(key)
            if values and values[0]:
                params[key] = values[0]

        known = (
            set(self.lookup.categories)
            | set(self.lookup.transaction_types)
            | set(self.lookup.cities)
            | set(self.lookup.districts)
        )
        ignored = [t for t in tokens if t not in known and t != "r"]

        return KufarSearch(params=params, city_token=city_token, city=city, ignored_tokens=ignored)

    def resolve_region(
        self,
        tokens: List[str],
        gtsy: Optional[str] = None,
        explicit_region: Optional[str] = None,
    ) -> Tuple[Optional[str], Optional[str], Optional[CityEntry]]:
        """Resolve the region facet from the strongest available hint.

        Order: an explicit `rgn` parameter, the `gtsy` location hint, then
        city and district tokens in the path. A region is only emitted when
        the hint is unambiguous; otherwise the search runs country-wide.

        Returns:
            (region id, city token, city entry needing a post-filter)
        """
        lookup = self.lookup

        if explicit_region and explicit_region in lookup.regions:
            return explicit_region, None, None

        if gtsy:
            hint = self._parse_gtsy(gtsy)
            locality = hint.get("locality")
            if locality and locality in lookup.cities:
                return self._city_region(locality)
            province = hint.get("province")
            if province and province in lookup.provinces:
                return lookup.provinces[province], None, None

        for token in tokens:
            if token in lookup.cities:
                return self._city_region(token)
            if token in lookup.districts:
                return lookup.districts[token], None, None

        return None, None, None

    def _city_region(self, token: str) -> Tuple[str, str, Optional[CityEntry]]:
        entry = self.lookup.cities[token]
        return entry.region, token, (None if entry.full_region else entry)

    @staticmethod
    def _parse_gtsy(gtsy: str) -> Dict[str, str]:
        """Parse `country-belarus~province-minsk~locality-minsk` into a dict."""
        hint: Dict[str, str] = {}
        for part in gtsy.split("~"):
            kind, sep, value = part.partition("-")
            if sep and value:
                hint[kind] = value
        return hint

    @staticmethod
    def _path_tokens(path: str) -> List[str]:
        """Split /l/r~minsk/snyat/kvartiru into ["r", "minsk", "snyat", "kvartiru"]."""
        tokens: List[str] = []
        segments = [s for s in path.split("/") if s]
        if segments and segments[0] in ("l", "re"):
            segments = segments[1:]
        for segment in segments:
            tokens.extend(t.lower() for t in segment.split("~") if t)
        return tokens

    async def _fetch_promoted(self, params: Dict[str, Any], url: str) -> Optional[Any]:
        """Promoted ads are optional; their failure does not fail the query."""
        try:
            return await self.fetcher.fetch_json(self.PROMOTED_URL, params=params)
        except ExtractionError as e:
            self.logger.warning("kufar_promoted_unavailable", url=url, error=e.detail)
            return None

    def _ads_from(self, payload: Any, url: str) -> List[Dict[str, Any]]:
        if not isinstance(payload, dict):
            raise MalformedResponseError(self.platform, "search response is not an object", url=url)

        ads = payload.get("ads")
        if ads is None:
            return []
        if not isinstance(ads, list):
            raise MalformedResponseError(self.platform, "`ads` is not a list", url=url)
        return [ad for ad in ads if isinstance(ad, dict)]

    @staticmethod
    def _merge(*batches: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        merged: List[Dict[str, Any]] = []
        seen = set()
        for batch in batches:
            for raw in batch:
                ad_id = raw.get("ad_id")
                if ad_id is None or ad_id in seen:
                    continue
                seen.add(ad_id)
                merged.append(raw)
        return merged

    def _normalize(self, raw: Dict[str, Any]) -> Optional[NormalizedAd]:
        ad_id = raw.get("ad_id")
        if ad_id is None:
            return None

        parameters = self._parameters(raw.get("ad_parameters"))
        region = self._label(parameters.get("region"))
        area = self._label(parameters.get("area"))
        location = ", ".join(p for p in (region, area) if p) or None
        address = self._label(parameters.get("address")) or None

        images = raw.get("images")
        first_image = images[0] if isinstance(images, list) and images and isinstance(images[0], dict) else {}

        return NormalizedAd(
            external_id=str(ad_id),
            title=clean_text(raw.get("subject")) or self.UNTITLED,
            description=clean_text(raw.get("body_short") or raw.get("body")) or None,
            price=PriceNormalizer.from_minor_units(raw, self.PRICE_FIELDS),
            image_url=resolve_image_url(first_image.get("url"), first_image.get("path"), self.IMAGE_CDN),
            ad_url=raw.get("ad_link") or self.ITEM_URL.format(ad_id=ad_id),
            location=location,
            address=address,
            published_at=parse_timestamp(raw.get("list_time")),
        )

    def _locality(self, raw: Dict[str, Any]) -> Optional[str]:
        """Town or district label of an ad, without its province."""
        return self._label(self._parameters(raw.get("ad_parameters")).get("area"))

    @staticmethod
    def _parameters(items: Any) -> Dict[str, Dict[str, Any]]:
        if not isinstance(items, list):
            return {}
        return {p["p"]: p for p in items if isinstance(p, dict) and p.get("p")}

    @staticmethod
    def _label(parameter: Optional[Dict[str, Any]]) -> Optional[str]:
        """Human label of an ad parameter; multi-valued labels are joined."""
        if not parameter:
            return None
        label = parameter.get("vl")
        if label is None:
            label = parameter.get("v")
        if isinstance(label, list):
            label = ", ".join(str(v) for v in label if v)
        if label is None:
            return None
        return clean_text(str(label)) or None
