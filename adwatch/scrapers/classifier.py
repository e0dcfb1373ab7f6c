"""URL classification: which platform a URL belongs to and whether it is a search page.

Used at registration time to pick the platform of a new tracked query, and
by each extractor's validate_url().
"""

import re
from dataclasses import dataclass
from typing import Optional, Tuple
from urllib.parse import urlparse

import structlog

from adwatch.scrapers.base import PLATFORM_AV, PLATFORM_KUFAR, PLATFORM_ONLINER

logger = structlog.get_logger(__name__)


# Subdomains are listed alongside their general domain
PLATFORM_DOMAINS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    (PLATFORM_KUFAR, ("re.kufar.by", "auto.kufar.by", "www.kufar.by", "kufar.by")),
    (PLATFORM_ONLINER, ("baraholka.onliner.by", "ab.onliner.by", "r.onliner.by", "onliner.by")),
    (PLATFORM_AV, ("cars.av.by", "av.by")),
)

ONLINER_SEARCH_SUBDOMAINS = ("baraholka", "ab", "r")

_ONLINER_BARAHOLKA_ITEM = re.compile(r"^/(products/\d+|viewtopic\.php)")
_ONLINER_REALTY_ITEM = re.compile(r"^/(ak|pk)/(apartments/)?\d+")
_KUFAR_ITEM = re.compile(r"^/(item|vi)/")


@dataclass
class UrlCheck:
    """Result of validating a candidate tracked-query URL."""

    valid: bool
    platform: Optional[str] = None
    is_search_page: Optional[bool] = None
    error: Optional[str] = None


def _hostname(url: str) -> Optional[str]:
    try:
        parsed = urlparse(url)
    except ValueError:
        return None
    if parsed.scheme not in ("http", "https") or not parsed.hostname:
        return None
    return parsed.hostname.lower()


def is_valid_url(url: str) -> bool:
    return _hostname(url) is not None


def detect_platform(url: str) -> Optional[str]:
    """Return the platform whose domain matches the URL host, or None."""
    host = _hostname(url)
    if not host:
        return None

    for platform, domains in PLATFORM_DOMAINS:
        for domain in domains:
            if host == domain or host.endswith("." + domain):
                return platform
    return None


def is_search_page(url: str, platform: str) -> bool:
    """Return False for single-ad permalinks and non-search surfaces."""
    host = _hostname(url)
    if not host:
        return False

    path = urlparse(url).path or "/"
    parts = [p for p in path.split("/") if p]

    if platform == PLATFORM_KUFAR:
        if _KUFAR_ITEM.match(path):
            return False
        return path.startswith("/l/") or path == "/l" or path.startswith("/re/")

    if platform == PLATFORM_ONLINER:
        subdomain = host.split(".")[0]
        if subdomain not in ONLINER_SEARCH_SUBDOMAINS:
            return False
        if subdomain == "ab":
            # ab.onliner.by/brand/model/12345 is one ad, ab.onliner.by/brand/model a search
            if len(parts) >= 3 and parts[-1].isdigit():
                return False
        if subdomain == "baraholka" and _ONLINER_BARAHOLKA_ITEM.match(path):
            return False
        if subdomain == "r" and _ONLINER_REALTY_ITEM.match(path):
            return False
        return True

    if platform == PLATFORM_AV:
        # cars.av.by/brand/model/12345 is one ad
        if len(parts) >= 3 and parts[-1].isdigit():
            return False
        return True

    return False


def validate_query_url(url: str) -> UrlCheck:
    """Classify a URL and check that it can be tracked."""
    if not is_valid_url(url):
        return UrlCheck(valid=False, error="Invalid URL")

    platform = detect_platform(url)
    if not platform:
        return UrlCheck(valid=False, error="Unsupported marketplace")

    if not is_search_page(url, platform):
        return UrlCheck(
            valid=False,
            platform=platform,
            is_search_page=False,
            error="This links to a single ad; a search page with filters is required",
        )

    return UrlCheck(valid=True, platform=platform, is_search_page=True)
