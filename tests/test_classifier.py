"""Tests for URL classification."""

import pytest

from adwatch.scrapers.classifier import detect_platform, is_search_page, validate_query_url


@pytest.mark.parametrize("url, platform", [
    ("https://www.kufar.by/l/minsk", "kufar"),
    ("https://re.kufar.by/l/minsk/snyat/kvartiru", "kufar"),
    ("https://auto.kufar.by/l/legkovye-avtomobili", "kufar"),
    ("https://baraholka.onliner.by/viewforum.php?f=62", "onliner"),
    ("https://r.onliner.by/ak/", "onliner"),
    ("https://ab.onliner.by/bmw", "onliner"),
    ("https://cars.av.by/filter", "av"),
    ("https://av.by/", "av"),
    ("https://www.olx.pl/nieruchomosci/", None),
    ("https://notkufar.by/l/minsk", None),
    ("ftp://kufar.by/l/minsk", None),
    ("kufar.by/l/minsk", None),
])
def test_detect_platform(url, platform):
    assert detect_platform(url) == platform


@pytest.mark.parametrize("url, platform, expected", [
    ("https://re.kufar.by/l/minsk/snyat/kvartiru", "kufar", True),
    ("https://www.kufar.by/item/123456", "kufar", False),
    ("https://re.kufar.by/vi/minsk/snyat/kvartiru/123456", "kufar", False),
    ("https://www.kufar.by/", "kufar", False),
    ("https://ab.onliner.by/bmw/x5", "onliner", True),
    ("https://ab.onliner.by/bmw/x5/4012345", "onliner", False),
    ("https://baraholka.onliner.by/viewforum.php?f=62", "onliner", True),
    ("https://baraholka.onliner.by/viewtopic.php?t=123", "onliner", False),
    ("https://baraholka.onliner.by/products/123", "onliner", False),
    ("https://r.onliner.by/ak/#rent_type[]=1_room", "onliner", True),
    ("https://r.onliner.by/ak/123456", "onliner", False),
    ("https://r.onliner.by/ak/apartments/123456", "onliner", False),
    ("https://www.onliner.by/", "onliner", False),
    ("https://cars.av.by/filter?brands[0][brand]=8", "av", True),
    ("https://cars.av.by/volkswagen/passat/112233", "av", False),
])
def test_is_search_page(url, platform, expected):
    assert is_search_page(url, platform) is expected


class TestValidateQueryUrl:

    def test_valid_search_page(self):
        check = validate_query_url("https://re.kufar.by/l/minsk/snyat/kvartiru")
        assert check.valid is True
        assert check.platform == "kufar"
        assert check.is_search_page is True
        assert check.error is None

    def test_malformed_url(self):
        check = validate_query_url("just text")
        assert check.valid is False
        assert check.platform is None
        assert check.error == "Invalid URL"

    def test_unsupported_site(self):
        check = validate_query_url("https://www.olx.pl/nieruchomosci/")
        assert check.valid is False
        assert check.error == "Unsupported marketplace"

    def test_permalink_is_rejected_with_platform(self):
        check = validate_query_url("https://www.kufar.by/item/123456")
        assert check.valid is False
        assert check.platform == "kufar"
        assert check.is_search_page is False
