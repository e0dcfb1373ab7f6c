"""Register all site extractors with the registry.

Called during application startup and by the command line runner.
"""

from typing import Optional

import structlog

from adwatch.scrapers.adapters import AvExtractor, KufarExtractor, OnlinerExtractor
from adwatch.scrapers.factory import ExtractorRegistry, get_extractor_registry


logger = structlog.get_logger(__name__)


def register_all_extractors(registry: Optional[ExtractorRegistry] = None) -> ExtractorRegistry:
    """Register the kufar, onliner and av extractors.

    Args:
        registry: Target registry; defaults to the global one

    Returns:
        The registry the extractors were added to
    """
    registry = registry or get_extractor_registry()

    for extractor_class in (KufarExtractor, OnlinerExtractor, AvExtractor):
        try:
            registry.register(extractor_class())
        except Exception as e:
            logger.error(
                "extractor_registration_failed",
                extractor=extractor_class.__name__,
                error=str(e),
                exc_info=True,
            )

    logger.info(
        "all_extractors_registered",
        count=len(registry.platforms()),
        platforms=registry.platforms(),
    )
    return registry
