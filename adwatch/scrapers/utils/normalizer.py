"""Normalization helpers for prices, images, locations and timestamps."""

import re
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Iterable, List, Optional, Sequence, Tuple

import structlog

logger = structlog.get_logger(__name__)


PRICE_NOT_SPECIFIED = "Цена не указана"


class PriceNormalizer:
    """Utilities for turning upstream price fields into display strings."""

    @staticmethod
    def to_decimal(value: Any) -> Optional[Decimal]:
        """Convert an int, float or numeric string to Decimal.

        Returns:
            Decimal value or None if the value is empty or not numeric
        """
        if value is None or isinstance(value, bool):
            return None
        if isinstance(value, str):
            value = re.sub(r"[^\d.\-]", "", value.replace(",", "."))
            if not value:
                return None
        try:
            return Decimal(str(value))
        except (InvalidOperation, ValueError):
            return None

    @staticmethod
    def format_amount(amount: Decimal) -> str:
        """Format an amount without trailing zeros for whole values.

        Examples:
            Decimal("1500") -> "1500"
            Decimal("1499.5") -> "1499.50"
        """
        if amount == amount.to_integral_value():
            return str(int(amount))
        return f"{amount:.2f}"

    @classmethod
    def from_minor_units(
        cls,
        item: dict,
        fields: Sequence[Tuple[str, str]],
        placeholder: str = PRICE_NOT_SPECIFIED,
    ) -> str:
        """Pick the first populated minor-unit price field and format it.

        Args:
            item: Raw upstream item
            fields: (field name, currency code) pairs in priority order
            placeholder: Returned when no field carries a positive amount

        Returns:
            "<amount> <currency>" or the placeholder
        """
        for field_name, currency in fields:
            minor = cls.to_decimal(item.get(field_name))
            if minor is not None and minor > 0:
                return f"{cls.format_amount(minor / 100)} {currency}"
        return placeholder

    @classmethod
    def from_major_units(cls, amount: Any, currency: Optional[str]) -> Optional[str]:
        """Format an amount that is already in major units."""
        value = cls.to_decimal(amount)
        if value is None or value <= 0:
            return None
        return f"{cls.format_amount(value)} {currency or ''}".strip()


def resolve_image_url(
    direct_url: Optional[str],
    relative_path: Optional[str],
    cdn_base: str,
) -> Optional[str]:
    """Prefer a direct image URL, else join a relative path to the CDN base."""
    if direct_url:
        if direct_url.startswith("//"):
            return f"https:{direct_url}"
        return direct_url
    if relative_path:
        if relative_path.startswith(("http://", "https://")):
            return relative_path
        return f"{cdn_base.rstrip('/')}/{relative_path.lstrip('/')}"
    return None


def split_location(full_address: Optional[str]) -> Tuple[Optional[str], Optional[str]]:
    """Split "City, street, house" into (location, address).

    The first comma-separated part is the coarse location. The remainder,
    if any, is the address. A bare locality yields no address.
    """
    if not full_address:
        return None, None
    parts = [p.strip() for p in full_address.split(",") if p.strip()]
    if not parts:
        return None, None
    location = parts[0]
    address = ", ".join(parts[1:]) or None
    return location, address


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 string or a unix timestamp (seconds or ms) to aware UTC."""
    if value is None or value == "":
        return None
    try:
        if isinstance(value, (int, float)):
            seconds = value / 1000 if value > 1e11 else value
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        text = str(value).strip()
        if text.isdigit():
            return parse_timestamp(int(text))
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        # +0300 -> +03:00
        text = re.sub(r"([+-]\d{2})(\d{2})$", r"\1:\2", text)
        parsed = datetime.fromisoformat(text)
    except (ValueError, OverflowError, OSError):
        logger.debug("timestamp_unparseable", value=value)
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def clean_text(text: Optional[str]) -> str:
    """Collapse whitespace runs and strip."""
    if not text:
        return ""
    return re.sub(r"\s+", " ", text).strip()


def matches_city(location: Optional[str], variants: Iterable[str]) -> bool:
    """Case-insensitive substring match in either direction."""
    if not location:
        return False
    needle = location.casefold()
    for variant in variants:
        candidate = variant.casefold()
        if candidate and (candidate in needle or needle in candidate):
            return True
    return False


def filter_by_city(
    ads: List[Any],
    variants: Sequence[str],
    locality: Callable[[Any], Optional[str]] = lambda ad: ad.location,
) -> List[Any]:
    """Keep ads whose locality matches one of the city spellings.

    Args:
        ads: Ads to filter
        variants: Known spellings of the city
        locality: Returns the string to match for an ad. It must name the
            town alone; a province name like "Брестская область" contains
            the capital's name and would match every ad in the province.
    """
    return [ad for ad in ads if matches_city(locality(ad), variants)]
