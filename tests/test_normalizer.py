"""Tests for normalization helpers."""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from adwatch.scrapers.utils.normalizer import (
    PRICE_NOT_SPECIFIED,
    PriceNormalizer,
    clean_text,
    filter_by_city,
    parse_timestamp,
    resolve_image_url,
    split_location,
)
from tests.factories import make_ad


class TestPriceNormalizer:

    @pytest.mark.parametrize("value, expected", [
        (150000, Decimal("150000")),
        ("1 500,50", Decimal("1500.50")),
        ("", None),
        (None, None),
        (True, None),
        ("договорная", None),
    ])
    def test_to_decimal(self, value, expected):
        assert PriceNormalizer.to_decimal(value) == expected

    def test_minor_units_first_populated_field(self):
        item = {"price_byn": "0", "price_usd": "45000"}
        fields = (("price_byn", "BYN"), ("price_usd", "USD"))

        assert PriceNormalizer.from_minor_units(item, fields) == "450 USD"

    def test_minor_units_fractional(self):
        assert PriceNormalizer.from_minor_units({"p": 149950}, (("p", "BYN"),)) == "1499.50 BYN"

    def test_minor_units_placeholder(self):
        assert PriceNormalizer.from_minor_units({}, (("price_byn", "BYN"),)) == PRICE_NOT_SPECIFIED

    def test_major_units(self):
        assert PriceNormalizer.from_major_units("350.00", "USD") == "350 USD"
        assert PriceNormalizer.from_major_units(0, "USD") is None


class TestTimestamps:

    @pytest.mark.parametrize("value", [
        "2026-10-18T09:00:00Z",
        "2026-10-18T12:00:00+0300",
        "2026-10-18T12:00:00+03:00",
        1792314000,
        1792314000000,
        "1792314000",
    ])
    def test_formats_resolve_to_same_instant(self, value):
        assert parse_timestamp(value) == datetime(2026, 10, 18, 9, 0, tzinfo=timezone.utc)

    def test_naive_is_utc(self):
        assert parse_timestamp("2026-10-18T09:00:00").tzinfo is not None

    @pytest.mark.parametrize("value", [None, "", "yesterday"])
    def test_unparseable(self, value):
        assert parse_timestamp(value) is None


def test_resolve_image_url():
    cdn = "https://rms.kufar.by/v1/gallery/"

    assert resolve_image_url("//img.example.by/a.jpg", None, cdn) == "https://img.example.by/a.jpg"
    assert resolve_image_url(None, "/adim1/abc.jpg", cdn) == "https://rms.kufar.by/v1/gallery/adim1/abc.jpg"
    assert resolve_image_url(None, None, cdn) is None


def test_split_location():
    assert split_location("Минск, ул. Немиги, 5") == ("Минск", "ул. Немиги, 5")
    assert split_location("Минск") == ("Минск", None)
    assert split_location(None) == (None, None)


def test_clean_text():
    assert clean_text("  Квартира \n\t у метро ") == "Квартира у метро"


def test_filter_by_city():
    ads = [
        make_ad(1, location="Минск, Фрунзенский"),
        make_ad(2, location="Брест"),
        make_ad(3, location=None),
    ]

    kept = filter_by_city(ads, ["Минск", "Minsk"])

    assert [ad.external_id for ad in kept] == ["ad-1"]


def test_filter_by_city_with_locality_key():
    ads = [make_ad(1, location="Брестская область"), make_ad(2, location="Брестская область")]
    towns = {"ad-1": "Брест", "ad-2": "Пинск"}

    kept = filter_by_city(ads, ["Брест"], locality=lambda ad: towns[ad.external_id])

    assert [ad.external_id for ad in kept] == ["ad-1"]
