"""Tests for the storefront read path: id normalization, cache, retries, stale fallback"""

import pytest
import pytest_asyncio

from cartwhisper.core.errors import RecommendationStoreError
from cartwhisper.domain.models.product import Candidate, RecommendationRecord
from cartwhisper.domain.repositories.recommendation_repo import RecommendationRepo
from cartwhisper.domain.services.read_svc import get_recommendations_cached, to_numeric_id, to_product_gid
from cartwhisper.utils.cache import MemoryTTLCache

from conftest import no_sleep

SHOP = "demo.myshopify.com"
SOURCE = "gid://shopify/Product/100"


@pytest.fixture
def cache():
    return MemoryTTLCache(default_ttl=60)


@pytest_asyncio.fixture
async def repo(fake_db):
    repo = RecommendationRepo(fake_db)
    await repo.persist(SHOP, [RecommendationRecord(
        source_product_id=SOURCE,
        source_product_title="Shoe",
        source_product_price=50.0,
        candidates=[
            Candidate(product_id="gid://shopify/Product/200", title="Sock", similarity=0.8, price=10.0, handle="sock"),
            Candidate(product_id="gid://shopify/Product/300", title="Lace", similarity=0.7, price=3.0),
        ],
        reasoning="Complete the outfit.",
    )])
    return repo


def test_id_normalization():
    assert to_product_gid("100") == SOURCE
    assert to_product_gid(" 100 ") == SOURCE
    assert to_product_gid(SOURCE) == SOURCE
    assert to_numeric_id(SOURCE) == "100"
    assert to_numeric_id("100") == "100"


@pytest.mark.asyncio
async def test_numeric_id_reads_and_formats(repo, cache, settings):
    items = await get_recommendations_cached(
        shop=SHOP, product_id="100", limit=3, repo=repo, cache=cache, settings=settings, sleep=no_sleep,
    )

    assert [i["numericId"] for i in items] == ["200", "300"]
    assert items[0]["handle"] == "sock"
    assert items[0]["reasoning"] == "Complete the outfit."


@pytest.mark.asyncio
async def test_second_read_is_served_from_cache(repo, cache, settings, fake_db):
    kwargs = dict(shop=SHOP, product_id="100", limit=1, repo=repo, cache=cache, settings=settings, sleep=no_sleep)
    first = await get_recommendations_cached(**kwargs)

    fake_db["recommendations"].fail["find"] = ConnectionError("mongo down")
    second = await get_recommendations_cached(**kwargs)

    assert second == first
    assert len(second) == 1


@pytest.mark.asyncio
async def test_store_outage_serves_stale_copy(repo, settings, fake_db):
    clock = [0.0]
    cache = MemoryTTLCache(default_ttl=60, clock=lambda: clock[0])
    kwargs = dict(shop=SHOP, product_id=SOURCE, limit=3, repo=repo, cache=cache, settings=settings, sleep=no_sleep)
    fresh = await get_recommendations_cached(**kwargs)

    clock[0] += 3600
    fake_db["recommendations"].fail["find"] = ConnectionError("mongo down")

    assert await get_recommendations_cached(**kwargs) == fresh


@pytest.mark.asyncio
async def test_store_outage_without_cache_raises(repo, cache, settings, fake_db):
    delays = []

    async def record_sleep(d):
        delays.append(d)

    fake_db["recommendations"].fail["find"] = ConnectionError("mongo down")
    with pytest.raises(RecommendationStoreError):
        await get_recommendations_cached(
            shop=SHOP, product_id="100", limit=3, repo=repo, cache=cache, settings=settings, sleep=record_sleep,
        )
    assert delays == [1.0, 2.0, 4.0]


@pytest.mark.asyncio
async def test_bare_ids_stored_by_sync_are_found(fake_db, cache, settings):
    repo = RecommendationRepo(fake_db)
    await repo.persist(SHOP, [RecommendationRecord(
        source_product_id="42",
        source_product_title="Mug",
        source_product_price=10.0,
        candidates=[Candidate(product_id="43", title="Coaster", similarity=0.6, price=4.0)],
    )])

    for requested in ("42", "gid://shopify/Product/42"):
        items = await get_recommendations_cached(
            shop=SHOP, product_id=requested, limit=3, repo=repo, cache=cache, settings=settings, sleep=no_sleep,
        )
        assert [i["id"] for i in items] == ["43"]
