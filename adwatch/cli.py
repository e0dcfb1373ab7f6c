"""Command line runner for manual extractor checks.

Usage:
    python -m adwatch.cli check <url> [--limit N] [--json]
"""

import argparse
import asyncio
import json
import sys
from typing import List, Optional

import structlog

from adwatch.config import settings
from adwatch.core.exceptions import ExtractionError, ValidationError
from adwatch.core.logging import configure_logging
from adwatch.scrapers.factory import ExtractorRegistry
from adwatch.scrapers.register_extractors import register_all_extractors
from adwatch.services.notifier import format_ad_message
from adwatch.services.registration import RegistrationService, most_recent

logger = structlog.get_logger(__name__)


async def check_url(url: str, limit: int, as_json: bool, registry: Optional[ExtractorRegistry] = None) -> int:
    """Extract a URL once and print the ads it yields.

    Returns:
        Process exit code
    """
    registry = registry or register_all_extractors(ExtractorRegistry())
    # Preview never touches storage
    service = RegistrationService(store=None, registry=registry)

    try:
        preview = await service.preview(url)
    except ValidationError as e:
        print(f"Invalid URL: {e.message}", file=sys.stderr)
        return 2
    except ExtractionError as e:
        print(f"Extraction failed: {json.dumps(e.to_dict(), ensure_ascii=False)}", file=sys.stderr)
        return 1

    ads = most_recent(preview.ads, limit)
    if as_json:
        print(json.dumps([ad.to_dict() for ad in ads], ensure_ascii=False, default=str, indent=2))
    else:
        print(f"{preview.platform}: {preview.ads_found} ads, showing {len(ads)}\n")
        for ad in ads:
            print(format_ad_message(ad))
            print()
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="adwatch", description="adwatch utilities")
    subparsers = parser.add_subparsers(dest="command", required=True)

    check = subparsers.add_parser("check", help="Extract a search URL once and print its ads")
    check.add_argument("url")
    check.add_argument("--limit", type=int, default=5, help="Number of ads to print")
    check.add_argument("--json", action="store_true", help="Print ads as JSON")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    # stdout is reserved for command output
    configure_logging(settings.LOG_LEVEL, json_output=settings.LOG_JSON, stream=sys.stderr)

    if args.command == "check":
        return asyncio.run(check_url(args.url, args.limit, args.json))
    return 2


if __name__ == "__main__":
    sys.exit(main())
