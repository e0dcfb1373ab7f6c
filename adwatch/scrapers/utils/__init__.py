"""Scraper utilities for fetching, user-agent rotation and data normalization."""

from .user_agents import UserAgentPool, get_user_agent, USER_AGENTS
from .fetch import Fetcher, DEFAULT_HEADERS, JSON_HEADERS
from .normalizer import (
    PriceNormalizer,
    PRICE_NOT_SPECIFIED,
    resolve_image_url,
    split_location,
    parse_timestamp,
    clean_text,
    matches_city,
    filter_by_city,
)
from .embedded_state import extract_element_json, walk


__all__ = [
    # User agents
    "UserAgentPool",
    "get_user_agent",
    "USER_AGENTS",
    # Fetching
    "Fetcher",
    "DEFAULT_HEADERS",
    "JSON_HEADERS",
    # Normalization
    "PriceNormalizer",
    "PRICE_NOT_SPECIFIED",
    "resolve_image_url",
    "split_location",
    "parse_timestamp",
    "clean_text",
    "matches_city",
    "filter_by_city",
    # Embedded state
    "extract_element_json",
    "walk",
]
