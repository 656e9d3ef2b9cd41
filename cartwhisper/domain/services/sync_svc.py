import logging
import time
from pathlib import Path
from typing import List, Optional, Sequence

from cartwhisper.core.config import Settings
from cartwhisper.core.errors import CatalogFetchError, ModelUnavailable, SyncCancelled
from cartwhisper.core.logging import capture_run_log
from cartwhisper.domain.models.plans import PlanTier, plan_config
from cartwhisper.domain.models.product import Product, SyncSummary
from cartwhisper.domain.repositories.recommendation_repo import RecommendationRepo
from cartwhisper.domain.services.embedding_svc import Embedder, embed_catalog
from cartwhisper.domain.services.export_svc import save_markdown_report, save_recommendations_json
from cartwhisper.domain.services.filters import build_records
from cartwhisper.domain.services.reasoning_svc import ReasoningEnricher
from cartwhisper.domain.services.similarity_svc import rank
from cartwhisper.utils.cancel import CancelToken

logger = logging.getLogger(__name__)

def _dedupe(products: Sequence[Product]) -> List[Product]:
    seen = set()
    out: List[Product] = []
    for p in products:
        if p.id in seen:
            logger.warning(f"Duplicate product id in catalog ignored: {p.id}")
            continue
        seen.add(p.id)
        out.append(p)
    return out

async def run_sync(
    *,
    shop: str,
    products: Sequence[Product],
    embedder: Embedder,
    enricher: ReasoningEnricher,
    repo: RecommendationRepo,
    settings: Settings,
    plan: PlanTier = PlanTier.MAX,
    enrich: bool = True,
    cancel_token: Optional[CancelToken] = None,
) -> SyncSummary:
    """
    One sync run for a shop.

    High-level flow:
      1) Dedupe and cap the catalog to the plan's product limit.
      2) Embed every product (fatal on failure: nothing is written).
      3) Rank neighbours by cosine similarity, keep top-N.
      4) Filter into cheaper, cross-category candidates (max 5).
      5) Enrich the first K records with LLM reasoning (best effort).
      6) Persist as the shop's active set, then export files.

    Fatal errors return success=False; reasoning failures keep success=True
    and are reported in `recommendation_error`.
    """
    start = time.perf_counter()
    cfg = plan_config(plan)
    logs_dir = Path(settings.DATA_DIR) / "logs"

    with capture_run_log(logs_dir) as run_log:
        summary = SyncSummary(success=False, shop=shop, log_file=str(run_log.path))
        logger.info(f"Starting sync shop={shop} plan={cfg.name} products={len(products)} enrich={enrich}")

        catalog = _dedupe(products)
        if cfg.max_products is not None and len(catalog) > cfg.max_products:
            logger.warning(f"{cfg.name} allows {cfg.max_products} products; ignoring {len(catalog) - cfg.max_products}")
            catalog = catalog[:cfg.max_products]

        summary.products_processed = len(catalog)
        if not catalog:
            summary.success = True
            summary.message = "No products found"
            summary.duration_ms = (time.perf_counter() - start) * 1000.0
            logger.info(f"Sync shop={shop}: no products, nothing to do")
            return summary

        try:
            vectors = await embed_catalog(catalog, embedder, cancel_token=cancel_token)

            ranked = rank(vectors, settings.similarity_top_n, titles={p.id: p.title for p in catalog})
            summary.similarities_computed = len(catalog) * (len(catalog) - 1)

            records = build_records(catalog, ranked)
            summary.candidates_filtered = sum(len(r.candidates) for r in records.values())
            summary.low_candidate_products = sum(1 for r in records.values() if r.low_candidates)
            logger.info(
                f"Filtered {summary.candidates_filtered} candidates for {len(records)} products "
                f"({summary.low_candidate_products} below minimum)"
            )

            limit = 0
            if enrich:
                limit = cfg.reasoning_limit if cfg.reasoning_limit is not None else settings.reasoning_limit
            enriched = await enricher.enrich_records(records, limit=limit, cancel_token=cancel_token)
            summary.reasoning_generated = enriched.generated
            summary.recommendation_error = enriched.error_detail
            summary.errors += len(enriched.errors)

            if cancel_token is not None:
                cancel_token.raise_if_cancelled("persistence")

            summary.persisted = await repo.persist(shop, enriched.records.values())
            summary.errors += summary.persisted.errors
        except (ModelUnavailable, CatalogFetchError, SyncCancelled) as e:
            logger.error(f"Sync aborted shop={shop}: {e.message}")
            summary.message = e.message
            summary.error_code = e.status_code
            summary.duration_ms = (time.perf_counter() - start) * 1000.0
            return summary

        if settings.EXPORT_FILES:
            try:
                save_recommendations_json(enriched.records, settings.DATA_DIR, shop)
                save_markdown_report(enriched.records, settings.DATA_DIR, shop)
            except (OSError, ValueError) as e:
                logger.error(f"Export failed shop={shop}: {e}")
                summary.errors += 1

        summary.success = True
        summary.message = "Sync completed successfully"
        summary.duration_ms = (time.perf_counter() - start) * 1000.0
        logger.info(
            f"Sync done shop={shop} products={summary.products_processed} "
            f"candidates={summary.candidates_filtered} reasoning={summary.reasoning_generated} "
            f"errors={summary.errors} time_ms={summary.duration_ms:.1f}"
        )
        return summary
