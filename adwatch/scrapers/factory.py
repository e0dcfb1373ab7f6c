"""Registry mapping platform identifiers to extractor instances."""

from typing import Dict, List, Optional

import structlog

from adwatch.core.exceptions import ValidationError
from adwatch.scrapers.base import Extractor


logger = structlog.get_logger(__name__)


class ExtractorRegistry:
    """Lookup of extractors by platform.

    Extractors hold no per-call state, so one instance per platform is
    shared by every poll.
    """

    def __init__(self):
        self._extractors: Dict[str, Extractor] = {}

    def register(self, extractor: Extractor) -> None:
        """Register an extractor under its platform identifier.

        Args:
            extractor: Object satisfying the Extractor protocol

        Raises:
            ValueError: The object does not satisfy the protocol
        """
        if not isinstance(extractor, Extractor):
            raise ValueError(f"Not an extractor: {extractor!r}")

        if extractor.platform in self._extractors:
            logger.warning("extractor_replaced", platform=extractor.platform)

        self._extractors[extractor.platform] = extractor
        logger.info(
            "extractor_registered",
            platform=extractor.platform,
            extractor=type(extractor).__name__,
        )

    def get(self, platform: str) -> Optional[Extractor]:
        """Get the extractor for a platform, or None if not registered."""
        extractor = self._extractors.get(platform)
        if extractor is None:
            logger.warning("extractor_not_found", platform=platform)
        return extractor

    def require(self, platform: str) -> Extractor:
        """Get the extractor for a platform.

        Raises:
            ValidationError: No extractor is registered for the platform
        """
        extractor = self.get(platform)
        if extractor is None:
            raise ValidationError(f"Unsupported platform: {platform}", platform=platform)
        return extractor

    def has(self, platform: str) -> bool:
        return platform in self._extractors

    def platforms(self) -> List[str]:
        return list(self._extractors.keys())

    def clear(self) -> None:
        self._extractors.clear()


# Global registry instance
extractor_registry = ExtractorRegistry()


def get_extractor_registry() -> ExtractorRegistry:
    """Get the global extractor registry."""
    return extractor_registry
