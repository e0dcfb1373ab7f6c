"""Site extractors."""

from .kufar import KufarExtractor
from .onliner import OnlinerExtractor
from .av import AvExtractor


__all__ = [
    "KufarExtractor",
    "OnlinerExtractor",
    "AvExtractor",
]
