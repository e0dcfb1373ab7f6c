"""Locate embedded JSON state inside server-rendered pages.

Finding the data island is kept apart from interpreting it: these helpers
return the decoded object or None, and never raise on a missing or
undecodable blob. Extractors decide what an absent object means (zero results).
"""

import json
from typing import Any, Optional, Sequence

import structlog
from bs4 import BeautifulSoup

logger = structlog.get_logger(__name__)


_MISSING = object()


def extract_element_json(html: str, element_id: str) -> Optional[Any]:
    """Decode the JSON body of `<script id="element_id">` (e.g. __NEXT_DATA__)."""
    soup = BeautifulSoup(html, "html.parser")
    element = soup.find("script", id=element_id)
    if element is None:
        return None

    content = element.string or element.get_text()
    if not content or not content.strip():
        return None

    try:
        return json.loads(content)
    except json.JSONDecodeError as e:
        logger.warning("data_island_undecodable", element_id=element_id, error=str(e))
        return None


def walk(data: Any, path: Sequence[str], default: Any = None) -> Any:
    """Follow nested dict keys, returning default when any level is missing."""
    current = data
    for key in path:
        if not isinstance(current, dict):
            return default
        current = current.get(key, _MISSING)
        if current is _MISSING:
            return default
    return current
