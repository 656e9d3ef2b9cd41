"""Tests for the per-shop file exports"""

import json

import pytest

from cartwhisper.domain.models.product import Candidate, RecommendationRecord
from cartwhisper.domain.services.export_svc import render_markdown_report, save_recommendations_json


@pytest.fixture
def records():
    return {
        "p1": RecommendationRecord(
            source_product_id="p1",
            source_product_title="Running Shoe",
            source_product_price=50.0,
            source_product_category="Shoes",
            candidates=[Candidate(product_id="p2", title="Sock", similarity=0.8, price=12.0, category="Socks")],
            reasoning="Socks complete the run.",
        ),
        "p3": RecommendationRecord(source_product_id="p3", source_product_title="Gift Card", source_product_price=25.0),
    }


def test_json_export_lands_in_shop_directory(tmp_path, records):
    path = save_recommendations_json(records, str(tmp_path), "demo.myshopify.com")

    assert path == tmp_path / "demo.myshopify.com" / "recommendations.json"
    assert set(json.loads(path.read_text(encoding="utf-8"))) == {"p1", "p3"}


@pytest.mark.parametrize("shop", ["..", ".", "", "../outside", "a/b", "a\\b"])
def test_shop_names_cannot_escape_data_dir(tmp_path, records, shop):
    data_dir = tmp_path / "data"
    with pytest.raises(ValueError):
        save_recommendations_json(records, str(data_dir), shop)
    assert not (tmp_path / "recommendations.json").exists()


def test_markdown_report_coverage(records):
    report = render_markdown_report(records)
    assert "- Coverage: **50.0%**" in report
    assert "| Sock | $12.00 | Socks | 80.0% |" in report
    assert "_No suitable recommendations._" in report
