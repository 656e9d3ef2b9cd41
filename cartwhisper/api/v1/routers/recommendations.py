# cartwhisper/api/v1/routers/recommendations.py
from fastapi import APIRouter, Depends, HTTPException, Query
from typing import Optional
import time
import logging

from cartwhisper.api.deps import reco_cache, recommendation_repo, settings_dep
from cartwhisper.api.v1.schemas.reco import RecommendationsResponse
from cartwhisper.domain.models.plans import PlanTier, plan_config
from cartwhisper.domain.services.constants import DEFAULT_READ_LIMIT
from cartwhisper.domain.services.read_svc import get_recommendations_cached

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["recommendations"])

@router.get("/recommendations/{shop}/{product_id:path}", response_model=RecommendationsResponse)
async def product_recommendations(
    shop: str,
    product_id: str,
    limit: int = Query(DEFAULT_READ_LIMIT, ge=1, le=20),
    plan: Optional[PlanTier] = Query(None, description="Caps limit to the tier's recommendations per product"),
    repo = Depends(recommendation_repo),
    cache = Depends(reco_cache),
    settings = Depends(settings_dep),
):
    """
    Storefront widget endpoint. `product_id` may be numeric or a Shopify GID.
    Pipeline: fresh cache → store (retried) → stale cache.
    """
    logger.info("Request: recommendations shop=%s product_id=%s limit=%s", shop, product_id, limit)
    if not product_id.strip():
        raise HTTPException(status_code=400, detail="product_id is required")
    if plan is not None:
        limit = min(limit, plan_config(plan).recommendations_per_product)
    start_time = time.perf_counter()

    items = await get_recommendations_cached(
        shop=shop,
        product_id=product_id,
        limit=limit,
        repo=repo,
        cache=cache,
        settings=settings,
    )

    elapsed_time = time.perf_counter() - start_time
    logger.info(
        "Response: recommendations product_id=%s, count=%s, elapsed_time=%.4fs",
        product_id, len(items), elapsed_time,
    )
    return RecommendationsResponse(productId=product_id, shop=shop, count=len(items), recommendations=items)
