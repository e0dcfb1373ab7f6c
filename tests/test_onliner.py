"""Tests for the Onliner extractor."""

import httpx
import pytest

from adwatch.core.exceptions import MalformedResponseError
from adwatch.scrapers.adapters.onliner import OnlinerExtractor
from adwatch.scrapers.utils.fetch import Fetcher
from adwatch.scrapers.utils.normalizer import PRICE_NOT_SPECIFIED


REALTY_URL = (
    "https://r.onliner.by/ak/#bounds[lb][lat]=53.82&bounds[lb][long]=27.41"
    "&bounds[rt][lat]=53.97&bounds[rt][long]=27.71"
    "&rent_type[]=2_rooms&price[min]=200&price[max]=500&currency=usd&order=created_at:desc"
)

CARDS_HTML = """
<html><body>
<div class="classifieds">
  <div class="classified__item">
    <a class="classified__link" href="/products/98765">
      <span class="classified__title">  Гитара   Yamaha F310 </span>
    </a>
    <div class="classified__price">350 р.</div>
    <img class="classified__image" src="//content.onliner.by/baraholka/1.jpeg">
    <div class="classified__location">Минск, Каменная Горка</div>
  </div>
  <div class="classified__item">
    <a class="classified__link" href="https://baraholka.onliner.by/viewtopic.php?t=123456">
      <span class="classified__title">Синтезатор Casio</span>
    </a>
  </div>
  <div class="classified__item">
    <a class="classified__link" href="/about">Not an ad</a>
  </div>
</div>
</body></html>
"""


def make_extractor(respond, calls=None):
    def handler(request: httpx.Request) -> httpx.Response:
        if calls is not None:
            calls.append(request)
        return respond(request)

    async def no_sleep(_):
        return None

    return OnlinerExtractor(fetcher=Fetcher("onliner", transport=httpx.MockTransport(handler), sleep=no_sleep))


def apartment(apartment_id, **fields):
    data = {
        "id": apartment_id,
        "rent_type": "2_rooms",
        "area": {"total": 54.3},
        "floor": 5,
        "price": {"amount": "450.00", "currency": "USD"},
        "url": f"https://r.onliner.by/ak/apartments/{apartment_id}",
        "photo": {"url": f"https://content.onliner.by/apartment_rentals/{apartment_id}.jpeg"},
        "location": {
            "address": "Минск, улица Притыцкого, 10",
            "user_address": "Минск, ул. Притыцкого, 10",
        },
        "created_at": "2026-10-18T12:15:00+03:00",
    }
    data.update(fields)
    return data


class TestValidateUrl:

    @pytest.mark.parametrize("url", [
        "https://r.onliner.by/ak/",
        "https://r.onliner.by/pk/",
        "https://baraholka.onliner.by/search.php?q=гитара",
        "https://ab.onliner.by/volkswagen/passat",
    ])
    def test_accepts_search_pages(self, url):
        assert OnlinerExtractor().validate_url(url) is True

    @pytest.mark.parametrize("url", [
        "https://r.onliner.by/ak/apartments/123456",
        "https://baraholka.onliner.by/viewtopic.php?t=123456",
        "https://ab.onliner.by/volkswagen/passat/4012345",
        "https://catalog.onliner.by/mobile",
        "https://www.kufar.by/l/minsk",
    ])
    def test_rejects_other_urls(self, url):
        assert OnlinerExtractor().validate_url(url) is False


class TestRealty:

    def test_filters_are_read_from_fragment(self):
        section, api_url, params = OnlinerExtractor().build_realty_request(REALTY_URL)

        assert section == "ak"
        assert api_url == "https://ak.api.onliner.by/search/apartments"
        assert ("rent_type[]", "2_rooms") in params
        assert ("price[min]", "200") in params
        assert ("price[max]", "500") in params
        assert ("currency", "usd") in params
        assert ("bounds[lb][lat]", "53.82") in params
        assert not any(key == "order" for key, _ in params)

    def test_sale_section_uses_pk_api(self):
        section, api_url, _ = OnlinerExtractor().build_realty_request("https://r.onliner.by/pk/")
        assert section == "pk"
        assert api_url == "https://pk.api.onliner.by/search/apartments"

    async def test_normalizes_apartments(self):
        calls = []
        extractor = make_extractor(
            lambda request: httpx.Response(200, json={"apartments": [apartment(555)]}),
            calls=calls,
        )

        ads = await extractor.extract(REALTY_URL)

        assert calls[0].url.host == "ak.api.onliner.by"
        assert len(ads) == 1
        ad = ads[0]
        assert ad.external_id == "onliner_realty_555"
        assert ad.title == "2-комнатная, 54.3 м², 5 этаж"
        assert ad.price == "450 USD"
        assert ad.location == "Минск"
        assert ad.address == "ул. Притыцкого, 10"
        assert ad.image_url == "https://content.onliner.by/apartment_rentals/555.jpeg"
        assert ad.published_at is not None

    async def test_studio_without_price(self):
        raw = apartment(7, rent_type="studio", price=None, floor=None)
        extractor = make_extractor(lambda request: httpx.Response(200, json={"apartments": [raw]}))

        ads = await extractor.extract(REALTY_URL)

        assert ads[0].title == "Студия, 54.3 м²"
        assert ads[0].price == PRICE_NOT_SPECIFIED

    async def test_bare_locality_has_no_address(self):
        raw = apartment(8, location={"user_address": "Минск"})
        extractor = make_extractor(lambda request: httpx.Response(200, json={"apartments": [raw]}))

        ads = await extractor.extract(REALTY_URL)

        assert ads[0].location == "Минск"
        assert ads[0].address is None

    async def test_flat_location_and_price_fields(self):
        raw = apartment(9, location="Минск, ул. Немиги, 5", price="350 USD")
        extractor = make_extractor(lambda request: httpx.Response(200, json={"apartments": [raw]}))

        ads = await extractor.extract(REALTY_URL)

        assert ads[0].location == "Минск"
        assert ads[0].address == "ул. Немиги, 5"
        assert ads[0].price == PRICE_NOT_SPECIFIED

    async def test_absent_apartments_is_zero_results(self):
        extractor = make_extractor(lambda request: httpx.Response(200, json={"total": 0}))
        assert await extractor.extract(REALTY_URL) == []

    async def test_wrong_apartments_shape_is_malformed(self):
        extractor = make_extractor(lambda request: httpx.Response(200, json={"apartments": "none"}))
        with pytest.raises(MalformedResponseError):
            await extractor.extract(REALTY_URL)


class TestListingCards:

    async def test_parses_cards(self):
        extractor = make_extractor(lambda request: httpx.Response(200, text=CARDS_HTML))

        ads = await extractor.extract("https://baraholka.onliner.by/search.php?q=гитара")

        assert [ad.external_id for ad in ads] == ["onliner_98765", "onliner_123456"]
        first = ads[0]
        assert first.title == "Гитара Yamaha F310"
        assert first.price == "350 р."
        assert first.ad_url == "https://baraholka.onliner.by/products/98765"
        assert first.image_url == "https://content.onliner.by/baraholka/1.jpeg"
        assert first.location == "Минск"
        assert first.address == "Каменная Горка"
        assert ads[1].price == PRICE_NOT_SPECIFIED

    async def test_page_without_listing_container_is_zero_results(self):
        extractor = make_extractor(lambda request: httpx.Response(200, text="<html><body>Ничего не найдено</body></html>"))
        assert await extractor.extract("https://ab.onliner.by/volkswagen/passat") == []
