"""Site lookup tables loaded from data files.

The tables live in JSON next to this module so a wrong code can be
corrected without touching extractor logic. KUFAR_LOOKUP_PATH points the
loader at a replacement file.
"""

from functools import lru_cache
from importlib import resources
from pathlib import Path
from typing import Dict, List, Optional

import structlog
from pydantic import BaseModel, Field

from adwatch.config import settings

logger = structlog.get_logger(__name__)


class CityEntry(BaseModel):
    """A city URL token and the region that contains it."""

    region: str
    full_region: bool = False  # True when the region facet alone narrows to this city
    names: List[str] = Field(default_factory=list)  # Alternate spellings seen in ad locations


class KufarLookup(BaseModel):
    """Kufar URL tokens mapped to search API facet codes."""

    regions: Dict[str, str]  # region id -> human name
    provinces: Dict[str, str]  # gtsy province token -> region id
    cities: Dict[str, CityEntry]
    districts: Dict[str, str]  # Minsk district token -> region id
    categories: Dict[str, str]  # path token -> cat code
    transaction_types: Dict[str, str]  # path token -> typ

    def region_name(self, region_id: str) -> Optional[str]:
        return self.regions.get(region_id)


def load_kufar_lookup(path: Optional[str] = None) -> KufarLookup:
    """Load and validate the Kufar lookup table.

    Args:
        path: Optional file path; defaults to the bundled kufar.json

    Returns:
        Validated KufarLookup
    """
    if path:
        text = Path(path).read_text(encoding="utf-8")
        source = path
    else:
        text = resources.files(__name__).joinpath("kufar.json").read_text(encoding="utf-8")
        source = "bundled"

    lookup = KufarLookup.model_validate_json(text)
    logger.debug(
        "kufar_lookup_loaded",
        source=source,
        regions=len(lookup.regions),
        cities=len(lookup.cities),
        categories=len(lookup.categories),
    )
    return lookup


@lru_cache(maxsize=1)
def get_kufar_lookup() -> KufarLookup:
    """Get the process-wide Kufar lookup table."""
    return load_kufar_lookup(settings.KUFAR_LOOKUP_PATH)
