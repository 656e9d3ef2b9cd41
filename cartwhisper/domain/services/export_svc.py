"""File exports of a sync run: JSON dump and a Markdown report."""

import json
import logging
from pathlib import Path
from typing import Mapping

from cartwhisper.domain.models.product import RecommendationRecord

logger = logging.getLogger(__name__)

RECOMMENDATIONS_FILENAME = "recommendations.json"
REPORT_FILENAME = "RECOMMENDATIONS.md"


def _shop_dir(data_dir: str, shop: str) -> Path:
    # shop becomes a single directory name under data_dir
    if not shop or shop in (".", "..") or "/" in shop or "\\" in shop:
        raise ValueError(f"Invalid shop name for export: {shop!r}")
    path = Path(data_dir) / shop
    path.mkdir(parents=True, exist_ok=True)
    return path


def save_recommendations_json(
    records: Mapping[str, RecommendationRecord],
    data_dir: str,
    shop: str,
) -> Path:
    """Write every record, keyed by source product id."""
    path = _shop_dir(data_dir, shop) / RECOMMENDATIONS_FILENAME
    payload = {pid: rec.model_dump(mode="json") for pid, rec in records.items()}
    path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
    logger.info(f"Saved {len(payload)} recommendation records to {path}")
    return path


def render_markdown_report(records: Mapping[str, RecommendationRecord]) -> str:
    total = len(records)
    covered = sum(1 for r in records.values() if r.candidates)
    coverage = (covered / total * 100) if total else 0.0

    lines = [
        "# Product recommendation report",
        "",
        "## Summary",
        "",
        f"- Products: **{total}**",
        f"- Products with recommendations: **{covered}**",
        f"- Coverage: **{coverage:.1f}%**",
        "",
        "## Recommendations",
        "",
    ]
    for record in records.values():
        lines += [
            f"### {record.source_product_title}",
            "",
            f"- Price: ${record.source_product_price:.2f}",
            f"- Category: {record.source_product_category or 'n/a'}",
            "",
        ]
        if record.reasoning:
            lines += [f"**Why:** {record.reasoning}", ""]
        if not record.candidates:
            lines += ["_No suitable recommendations._", ""]
            continue
        lines += ["| Product | Price | Category | Similarity |", "|---|---|---|---|"]
        for c in record.candidates:
            lines.append(f"| {c.title} | ${c.price:.2f} | {c.category or 'n/a'} | {c.similarity * 100:.1f}% |")
        lines.append("")
    return "\n".join(lines)


def save_markdown_report(
    records: Mapping[str, RecommendationRecord],
    data_dir: str,
    shop: str,
) -> Path:
    path = _shop_dir(data_dir, shop) / REPORT_FILENAME
    path.write_text(render_markdown_report(records), encoding="utf-8")
    logger.info(f"Markdown report saved to {path}")
    return path
