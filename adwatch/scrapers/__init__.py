"""Extraction pipeline: extractor contract, site extractors, registry and polling."""

from adwatch.scrapers.base import (
    PLATFORMS,
    PLATFORM_AV,
    PLATFORM_KUFAR,
    PLATFORM_ONLINER,
    Extractor,
    NormalizedAd,
)

__all__ = [
    "PLATFORMS",
    "PLATFORM_AV",
    "PLATFORM_KUFAR",
    "PLATFORM_ONLINER",
    "Extractor",
    "NormalizedAd",
]
