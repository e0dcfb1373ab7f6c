"""Tests for the command line runner."""

import json

from adwatch.cli import build_parser, check_url
from adwatch.core.exceptions import TransientNetworkError
from adwatch.scrapers.factory import ExtractorRegistry
from tests.factories import make_ad


SEARCH_URL = "https://re.kufar.by/l/minsk/snyat/kvartiru"


class StubKufar:
    platform = "kufar"

    def __init__(self, ads=None, error=None):
        self.ads = ads or []
        self.error = error

    def validate_url(self, url):
        return True

    async def extract(self, url):
        if self.error:
            raise self.error
        return list(self.ads)


def registry_with(extractor) -> ExtractorRegistry:
    registry = ExtractorRegistry()
    registry.register(extractor)
    return registry


def test_parser():
    args = build_parser().parse_args(["check", SEARCH_URL, "--limit", "3", "--json"])

    assert args.command == "check"
    assert args.url == SEARCH_URL
    assert args.limit == 3
    assert args.json is True


async def test_prints_json(capsys):
    registry = registry_with(StubKufar([make_ad(i, published_minutes=i) for i in range(4)]))

    code = await check_url(SEARCH_URL, 2, True, registry=registry)

    assert code == 0
    printed = json.loads(capsys.readouterr().out)
    assert [ad["external_id"] for ad in printed] == ["ad-3", "ad-2"]


async def test_prints_messages(capsys):
    registry = registry_with(StubKufar([make_ad(1)]))

    code = await check_url(SEARCH_URL, 5, False, registry=registry)

    out = capsys.readouterr().out
    assert code == 0
    assert "kufar: 1 ads, showing 1" in out
    assert "🔗 https://www.kufar.by/item/1" in out


async def test_invalid_url_exit_code(capsys):
    code = await check_url("https://www.kufar.by/item/1", 5, False, registry=registry_with(StubKufar()))

    assert code == 2
    assert "Invalid URL" in capsys.readouterr().err


async def test_extraction_failure_exit_code(capsys):
    error = TransientNetworkError("kufar", "timed out", url=SEARCH_URL)

    code = await check_url(SEARCH_URL, 5, False, registry=registry_with(StubKufar(error=error)))

    assert code == 1
    assert "transient_network" in capsys.readouterr().err
