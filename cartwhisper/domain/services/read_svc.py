from typing import Awaitable, Callable, List
import asyncio
import logging

from cartwhisper.core.config import Settings
from cartwhisper.core.errors import RecommendationStoreError
from cartwhisper.domain.repositories.recommendation_repo import RecommendationRepo
from cartwhisper.domain.services.constants import SHOPIFY_PRODUCT_GID_PREFIX
from cartwhisper.utils.cache import RecoCache, reco_cache_key
from cartwhisper.utils.retry import retry_async

logger = logging.getLogger(__name__)

def to_product_gid(product_id: str) -> str:
    """Numeric Shopify ids become gid://shopify/Product/<n>; GIDs pass through."""
    product_id = product_id.strip()
    if product_id.startswith("gid://"):
        return product_id
    return f"{SHOPIFY_PRODUCT_GID_PREFIX}{product_id}"

def to_numeric_id(product_id: str) -> str:
    return product_id.rsplit("/", 1)[-1] if product_id.startswith("gid://") else product_id

def _format(rec: dict) -> dict:
    return {
        "id": rec["id"],
        "numericId": to_numeric_id(rec["id"]),
        "handle": rec.get("handle"),
        "title": rec.get("title"),
        "price": rec.get("price"),
        "image": rec.get("image"),
        "similarity": rec.get("similarity"),
        "reasoning": rec.get("reasoning"),
    }

async def get_recommendations_cached(
    *,
    shop: str,
    product_id: str,
    limit: int,
    repo: RecommendationRepo,
    cache: RecoCache,
    settings: Settings,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> List[dict]:
    """
    Storefront lookup: fresh cache -> store (retried with capped backoff) ->
    stale cache. Raises RecommendationStoreError when all three miss.
    """
    gid = to_product_gid(product_id)
    # catalogs may store either the GID or the bare id
    lookup_ids = list(dict.fromkeys([gid, to_numeric_id(gid)]))
    key = reco_cache_key(shop, gid, limit)

    if (cached := await cache.get(key)) is not None:
        logger.info(f"[read] cache hit shop={shop} product_id={gid} limit={limit}")
        return cached

    try:
        rows = await retry_async(
            lambda: repo.get_for_product(shop, lookup_ids, limit),
            retries=settings.store_read_retries,
            base_s=1.0,
            cap_s=5.0,
            label=f"recommendation read product_id={gid}",
            sleep=sleep,
        )
    except Exception as e:
        if (stale := await cache.get_stale(key)) is not None:
            logger.warning(f"[read] store unavailable, serving stale cache for product_id={gid}: {e}")
            return stale
        raise RecommendationStoreError(shop, gid, e) from e

    items = [_format(r) for r in rows]
    await cache.set(key, items, ttl=settings.reco_cache_ttl)
    logger.info(f"[read] shop={shop} product_id={gid} count={len(items)}")
    return items
