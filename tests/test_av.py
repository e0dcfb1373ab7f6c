"""Tests for the av.by extractor."""

import json

import httpx
import pytest

from adwatch.core.exceptions import MalformedResponseError
from adwatch.scrapers.adapters.av import AvExtractor
from adwatch.scrapers.utils.embedded_state import extract_element_json, walk
from adwatch.scrapers.utils.fetch import Fetcher
from adwatch.scrapers.utils.normalizer import PRICE_NOT_SPECIFIED


SEARCH_URL = "https://cars.av.by/filter?brands[0][brand]=8&price_usd[max]=10000"


def next_data_page(adverts) -> str:
    data = {"props": {"initialState": {"filter": {"main": {"adverts": adverts}}}}}
    return (
        "<html><head></head><body><div id=\"__next\"></div>"
        f"<script id=\"__NEXT_DATA__\" type=\"application/json\">{json.dumps(data, ensure_ascii=False)}</script>"
        "</body></html>"
    )


def advert(advert_id, **fields):
    data = {
        "id": advert_id,
        "properties": [
            {"name": "brand", "value": "Volkswagen"},
            {"name": "model", "value": "Passat"},
            {"name": "year", "value": 2012},
        ],
        "description": "Один владелец",
        "price": {"usd": {"amount": 9500}, "byn": {"amount": 30875}},
        "photos": [{"medium": {"url": f"https://avcdn.av.by/advertmedium/{advert_id}.jpeg"}}],
        "publicUrl": f"/volkswagen/passat/{advert_id}",
        "locationName": "Минск",
        "publishedAt": "2026-10-18T08:00:00+0000",
    }
    data.update(fields)
    return data


def make_extractor(html: str) -> AvExtractor:
    async def no_sleep(_):
        return None

    transport = httpx.MockTransport(lambda request: httpx.Response(200, text=html))
    return AvExtractor(fetcher=Fetcher("av", transport=transport, sleep=no_sleep))


class TestAvExtractor:

    def test_validate_url(self):
        extractor = AvExtractor()
        assert extractor.validate_url(SEARCH_URL) is True
        assert extractor.validate_url("https://cars.av.by/volkswagen/passat") is True
        assert extractor.validate_url("https://cars.av.by/volkswagen/passat/112233") is False
        assert extractor.validate_url("https://www.kufar.by/l/minsk") is False

    async def test_normalizes_adverts(self):
        ads = await make_extractor(next_data_page([advert(112233)])).extract(SEARCH_URL)

        assert len(ads) == 1
        ad = ads[0]
        assert ad.external_id == "av_112233"
        assert ad.title == "Volkswagen Passat, 2012"
        assert ad.price == "9500 USD"
        assert ad.image_url == "https://avcdn.av.by/advertmedium/112233.jpeg"
        assert ad.ad_url == "https://cars.av.by/volkswagen/passat/112233"
        assert ad.location == "Минск"
        assert ad.description == "Один владелец"

    async def test_absolute_public_url_is_kept(self):
        raw = advert(1, publicUrl="https://cars.av.by/audi/a4/1")
        ads = await make_extractor(next_data_page([raw])).extract(SEARCH_URL)
        assert ads[0].ad_url == "https://cars.av.by/audi/a4/1"

    async def test_price_falls_back_to_byn(self):
        raw = advert(1, price={"byn": {"amount": 30875}})
        ads = await make_extractor(next_data_page([raw])).extract(SEARCH_URL)
        assert ads[0].price == "30875 BYN"

    async def test_missing_price(self):
        raw = advert(1, price=None)
        ads = await make_extractor(next_data_page([raw])).extract(SEARCH_URL)
        assert ads[0].price == PRICE_NOT_SPECIFIED

    async def test_missing_data_island_is_zero_results(self):
        ads = await make_extractor("<html><body>Технические работы</body></html>").extract(SEARCH_URL)
        assert ads == []

    async def test_missing_adverts_is_zero_results(self):
        html = (
            "<script id=\"__NEXT_DATA__\" type=\"application/json\">"
            "{\"props\": {\"initialState\": {}}}</script>"
        )
        assert await make_extractor(html).extract(SEARCH_URL) == []

    async def test_wrong_adverts_shape_is_malformed(self):
        with pytest.raises(MalformedResponseError):
            await make_extractor(next_data_page({"count": 3})).extract(SEARCH_URL)


class TestEmbeddedState:

    def test_undecodable_data_island(self):
        html = "<script id=\"__NEXT_DATA__\">{not json</script>"
        assert extract_element_json(html, "__NEXT_DATA__") is None

    def test_walk_default(self):
        assert walk({"a": {"b": 1}}, ["a", "c"], default=[]) == []
        assert walk({"a": 1}, ["a", "b"]) is None
