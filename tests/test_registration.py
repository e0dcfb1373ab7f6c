"""Tests for tracked query registration."""

from typing import List

import pytest

from adwatch.core.exceptions import (
    DuplicateQueryError,
    QueryLimitExceeded,
    TransientNetworkError,
    ValidationError,
)
from adwatch.scrapers.base import NormalizedAd
from adwatch.scrapers.factory import ExtractorRegistry
from adwatch.services.registration import RegistrationService, most_recent
from tests.factories import make_ad


SEARCH_URL = "https://re.kufar.by/l/minsk/snyat/kvartiru"


class StubKufar:
    platform = "kufar"

    def __init__(self, ads=None, error=None):
        self.ads = ads or []
        self.error = error
        self.calls = 0

    def validate_url(self, url: str) -> bool:
        return True

    async def extract(self, url: str) -> List[NormalizedAd]:
        self.calls += 1
        if self.error:
            raise self.error
        return list(self.ads)


def build_service(store, extractor, max_queries=10):
    registry = ExtractorRegistry()
    registry.register(extractor)
    return RegistrationService(store, registry, max_queries=max_queries)


def test_most_recent_orders_newest_first():
    ads = [make_ad(1), make_ad(2, published_minutes=5), make_ad(3, published_minutes=9)]

    assert [ad.external_id for ad in most_recent(ads, limit=2)] == ["ad-3", "ad-2"]
    assert [ad.external_id for ad in most_recent(ads)] == ["ad-3", "ad-2", "ad-1"]


class TestRegister:

    async def test_stores_query_and_seeds_ads(self, store, subscriber):
        ads = [make_ad(i, published_minutes=i) for i in range(8)]
        service = build_service(store, StubKufar(ads))

        result = await service.register(subscriber.id, "  " + SEARCH_URL + " ")

        assert result.query.url == SEARCH_URL
        assert result.query.platform == "kufar"
        assert result.ads_found == 8
        assert [ad.external_id for ad in result.preview] == ["ad-7", "ad-6", "ad-5", "ad-4", "ad-3"]

        inserted, _ = await store.insert_ad_if_absent(result.query.id, make_ad(3))
        assert inserted is False

    async def test_zero_results_still_registers(self, store, subscriber):
        service = build_service(store, StubKufar([]))

        result = await service.register(subscriber.id, SEARCH_URL)

        assert result.ads_found == 0
        assert result.preview == []
        assert await store.count_queries(subscriber.id) == 1

    @pytest.mark.parametrize("url", [
        "not a url",
        "https://www.olx.pl/nieruchomosci/",
        "https://www.kufar.by/item/123456",
    ])
    async def test_rejects_invalid_urls(self, store, subscriber, url):
        extractor = StubKufar([make_ad(1)])
        service = build_service(store, extractor)

        with pytest.raises(ValidationError):
            await service.register(subscriber.id, url)

        assert extractor.calls == 0
        assert await store.count_queries(subscriber.id) == 0

    async def test_duplicate_url(self, store, subscriber):
        service = build_service(store, StubKufar([make_ad(1)]))
        await service.register(subscriber.id, SEARCH_URL)

        with pytest.raises(DuplicateQueryError):
            await service.register(subscriber.id, SEARCH_URL)

    async def test_query_limit(self, store, subscriber):
        service = build_service(store, StubKufar(), max_queries=2)
        await service.register(subscriber.id, SEARCH_URL)
        await service.register(subscriber.id, SEARCH_URL + "?query=balkon")

        with pytest.raises(QueryLimitExceeded) as exc_info:
            await service.register(subscriber.id, SEARCH_URL + "?query=metro")

        assert exc_info.value.limit == 2

    async def test_extraction_failure_stores_nothing(self, store, subscriber):
        error = TransientNetworkError("kufar", "timed out", url=SEARCH_URL)
        service = build_service(store, StubKufar(error=error))

        with pytest.raises(TransientNetworkError):
            await service.register(subscriber.id, SEARCH_URL)

        assert await store.count_queries(subscriber.id) == 0

    async def test_platform_without_extractor(self, store, subscriber):
        service = build_service(store, StubKufar())

        with pytest.raises(ValidationError):
            await service.register(subscriber.id, "https://cars.av.by/filter")


class TestPreview:

    async def test_preview_does_not_persist(self, store, subscriber):
        service = build_service(store, StubKufar([make_ad(1), make_ad(2)]))

        preview = await service.preview(SEARCH_URL)

        assert preview.platform == "kufar"
        assert preview.ads_found == 2
        assert await store.count_queries(subscriber.id) == 0
