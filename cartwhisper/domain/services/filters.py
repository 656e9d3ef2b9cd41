import logging
from typing import Dict, List, Mapping, Sequence

from cartwhisper.domain.models.product import Candidate, Product, RecommendationRecord, SimilarityEntry
from cartwhisper.domain.services.constants import MAX_CANDIDATES, MIN_CANDIDATES_WARN, PRICE_CEILING_RATIO

logger = logging.getLogger(__name__)

def _rejection_reason(source: Product, neighbour: Product) -> str | None:
    """
    Return why a neighbour is not a candidate for `source`, or None if it passes.
    Rules are checked in order; the 110% ceiling is kept as its own rule even
    though the no-upsell rule already covers it.
    """
    # Rule 1: no upsells
    if neighbour.price > source.price:
        return f"price too high ({neighbour.price} > {source.price})"

    # Rule 2: at most 110% of the source price
    if neighbour.price > source.price * PRICE_CEILING_RATIO:
        return f"price above {PRICE_CEILING_RATIO:.0%} ({neighbour.price} > {source.price * PRICE_CEILING_RATIO})"

    # Rule 3: cross-category only
    if neighbour.product_type == source.product_type:
        return f"same category ({neighbour.product_type})"

    return None

def filter_candidates(
    source: Product,
    ranked: Sequence[SimilarityEntry],
    catalog: Mapping[str, Product],
    max_candidates: int = MAX_CANDIDATES,
) -> List[Candidate]:
    """
    Keep ranked neighbours that are not pricier than the source and belong to
    another category, in rank order, capped at `max_candidates`.
    """
    kept: List[Candidate] = []
    for entry in ranked:
        neighbour = catalog.get(entry.product_id)
        if neighbour is None:
            logger.debug(f"  skip {entry.product_id}: not in catalog")
            continue

        reason = _rejection_reason(source, neighbour)
        if reason:
            logger.debug(f"  reject {neighbour.title}: {reason}")
            continue

        logger.debug(
            f"  keep {neighbour.title}: similarity={entry.similarity} "
            f"price={neighbour.price} category={neighbour.product_type}"
        )
        kept.append(Candidate(
            product_id=neighbour.id,
            title=neighbour.title,
            similarity=entry.similarity,
            price=neighbour.price,
            category=neighbour.product_type,
            vendor=neighbour.vendor,
            image=neighbour.image,
            handle=neighbour.handle,
        ))

    return kept[:max_candidates]

def build_records(
    products: Sequence[Product],
    ranked: Mapping[str, Sequence[SimilarityEntry]],
) -> Dict[str, RecommendationRecord]:
    """
    Apply the candidate filter to every ranked product.
    Returns records keyed by source product id, in catalog order.
    """
    catalog = {p.id: p for p in products}
    records: Dict[str, RecommendationRecord] = {}

    for product_id, neighbours in ranked.items():
        source = catalog.get(product_id)
        if source is None:
            logger.warning(f"Product not found in catalog: {product_id}")
            continue

        logger.debug(f"Filtering {source.title} (price={source.price}, category={source.product_type})")
        candidates = filter_candidates(source, neighbours, catalog)
        low = len(candidates) < MIN_CANDIDATES_WARN
        if low:
            logger.warning(
                f"Only {len(candidates)} candidates for {source.title} "
                f"(product_id={source.id}, want at least {MIN_CANDIDATES_WARN})"
            )

        records[product_id] = RecommendationRecord(
            source_product_id=source.id,
            source_product_title=source.title,
            source_product_price=source.price,
            source_product_category=source.product_type,
            source_product_image=source.image,
            candidates=candidates,
            low_candidates=low,
        )

    return records
