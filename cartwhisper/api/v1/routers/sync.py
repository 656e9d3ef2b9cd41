# cartwhisper/api/v1/routers/sync.py
from fastapi import APIRouter, Body, Depends, HTTPException, Query
from fastapi.responses import JSONResponse
from typing import Optional
import logging
import re

from cartwhisper.api.deps import (
    cancel_registry, embedder_dep, enricher_dep, product_repo,
    reco_cache, recommendation_repo, settings_dep,
)
from cartwhisper.api.v1.schemas.reco import StatsOut, SyncRequest
from cartwhisper.core.config import Settings
from cartwhisper.core.errors import CatalogFetchError
from cartwhisper.domain.models.plans import PlanTier
from cartwhisper.domain.services.constants import SHOP_DOMAIN_PATTERN
from cartwhisper.domain.services.sync_svc import run_sync

logger = logging.getLogger(__name__)

_SHOP_RE = re.compile(SHOP_DOMAIN_PATTERN)

def valid_shop(shop: str) -> str:
    if not _SHOP_RE.match(shop):
        raise HTTPException(status_code=400, detail=f"Invalid shop domain: {shop}")
    return shop

router = APIRouter(prefix="/shops/{shop}", tags=["sync"], dependencies=[Depends(valid_shop)])

@router.post("/sync", summary="Recompute and store the shop's recommendations")
async def sync_shop(
    shop: str,
    payload: Optional[SyncRequest] = Body(default=None),
    plan: PlanTier = Query(PlanTier.MAX, description="Subscription tier limits applied to the run"),
    enrich: bool = Query(True, description="Generate LLM reasoning for the first K products"),
    settings: Settings = Depends(settings_dep),
    products_repo = Depends(product_repo),
    repo = Depends(recommendation_repo),
    cache = Depends(reco_cache),
    registry = Depends(cancel_registry),
    embedder = Depends(embedder_dep),
    enricher = Depends(enricher_dep),
):
    """
    Body products (Shopify shape accepted) replace the stored catalog snapshot;
    without them the last snapshot is re-processed.
    Fatal failures return 503 (model) / 502 (catalog) / 409 (cancelled) with the run summary.
    A second sync for a shop that is still running is rejected with 409.
    """
    if registry.active(shop):
        raise HTTPException(status_code=409, detail=f"A sync is already running for {shop}")
    token = registry.register(shop)
    try:
        if payload is not None and payload.products is not None:
            products = payload.products
            await products_repo.save_catalog(shop, products)
        else:
            try:
                products = await products_repo.load_catalog(shop)
            except Exception as e:
                raise CatalogFetchError(shop, str(e)) from e
            if not products:
                raise CatalogFetchError(shop, "no stored catalog; send products in the request body")

        summary = await run_sync(
            shop=shop,
            products=products,
            embedder=embedder,
            enricher=enricher,
            repo=repo,
            settings=settings,
            plan=plan,
            enrich=enrich,
            cancel_token=token,
        )
    finally:
        registry.release(shop, token)

    if summary.success:
        removed = await cache.delete_prefix(f"{shop}:")
        logger.debug(f"Invalidated {removed} cached lookups for shop={shop}")
        return summary.model_dump()

    status = summary.error_code or 500
    return JSONResponse(status_code=status, content=summary.model_dump(mode="json"))

@router.post("/sync/cancel", summary="Cancel the shop's running sync")
async def cancel_sync(shop: str, registry = Depends(cancel_registry)):
    if not registry.cancel(shop):
        raise HTTPException(status_code=404, detail=f"No running sync for {shop}")
    return {"success": True, "shop": shop, "cancelled": True}

@router.get("/recommendations/stats", response_model=StatsOut)
async def recommendation_stats(shop: str, repo = Depends(recommendation_repo)):
    stats = await repo.stats(shop)
    return StatsOut(shop=shop, **stats)

@router.delete("/recommendations", summary="Remove every stored recommendation of the shop")
async def delete_recommendations(shop: str, repo = Depends(recommendation_repo), cache = Depends(reco_cache)):
    deleted = await repo.delete_shop(shop)
    removed = await cache.delete_prefix(f"{shop}:")
    logger.info(f"Deleted {deleted} recommendations and {removed} cached lookups for shop={shop}")
    return {"success": True, "shop": shop, "deleted": deleted}
