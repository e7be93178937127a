"""brands モジュールのテスト."""

from datetime import datetime, timezone
from unittest.mock import patch

import pytest

from storefront.brands import brand_rankings
from storefront.errors import InternalError
from storefront.models import CatalogItem
from storefront.scoring import ScoringConfig

NOW = datetime(2026, 2, 27, 12, 0, tzinfo=timezone.utc)

CATALOG = [
    CatalogItem(id="apple-iphone-15", brand="Apple", name="iPhone 15", price=1000),
    CatalogItem(id="apple-macbook-air", brand="Apple", name="MacBook Air", price=1500),
    CatalogItem(id="dell-xps-13", brand="Dell", name="XPS 13", price=1200),
]


def _row(id_, type_, product_id=None, brand=None, search_term=None):
    return {
        "id": id_,
        "type": type_,
        "session_id": "s1",
        "timestamp": f"2026-02-27T10:{id_:02d}:00+00:00",
        "product_id": product_id,
        "brand": brand,
        "search_term": search_term,
    }


ROWS = [
    _row(1, "product_view", "apple-iphone-15", "Apple"),
    _row(2, "product_view", "apple-iphone-15", "Apple"),
    _row(3, "result_click", "apple-iphone-15", "Apple"),
    _row(4, "search", search_term="iphone 15"),
    _row(5, "page_view", brand="Dell"),
    _row(6, "product_view", "dell-xps-13", "Dell"),
]


@pytest.fixture
def sources():
    with patch("storefront.catalog.fetch_catalog", return_value=CATALOG) as mock_catalog, \
            patch("storefront.db.fetch_all_interactions", return_value=ROWS) as mock_fetch:
        yield mock_catalog, mock_fetch


def _rankings(**kwargs):
    return brand_rankings(scoring=ScoringConfig(), now=NOW, **kwargs)


class TestBrandRankings:
    """brand_rankings のテスト."""

    def test_sorted_by_brand_score(self, sources):
        result = _rankings()

        assert [b["brand"] for b in result["brands"]] == ["Apple", "Dell"]
        assert result["totalBrands"] == 2
        assert result["totalProducts"] == 3
        assert result["summary"] == {
            "totalInteractions": 6,
            "brandsWithInteractions": 2,
            "topPerformingBrand": "Apple",
        }

    def test_breakdown_and_brand_score(self, sources):
        apple = _rankings()["brands"][0]

        assert apple["totalInteractions"] == 4
        assert apple["interactionBreakdown"] == {
            "pageViews": 0,
            "categoryViews": 0,
            "productViews": 2,
            "resultClicks": 1,
            "searches": 1,
        }
        assert apple["brandScore"] == 12.5
        assert apple["productCount"] == 2
        assert apple["averagePrice"] == 1250.0
        assert apple["conversionRate"] == 0.5
        assert apple["performanceMetrics"] == {
            "engagementRate": 0.75,
            "searchToClickRate": 1.0,
            "viewToClickRate": 0.5,
        }

    def test_search_term_attributed_to_brand(self, sources):
        """ブランド指定の無い検索も検索語から推定したブランドに数える."""
        apple, dell = _rankings()["brands"]
        assert apple["recentInteractions"][0]["searchTerm"] == "iphone 15"
        assert dell["interactionBreakdown"]["searches"] == 0

    def test_top_products_use_trending_key(self, sources):
        apple = _rankings()["brands"][0]
        assert apple["topProducts"] == [{
            "productId": "iphone-15",
            "name": "iPhone 15",
            "views": 2,
            "clicks": 1,
            "searches": 0,
            "score": 11,
        }]

    def test_recent_interactions_newest_first(self, sources):
        dell = _rankings()["brands"][1]
        assert [i["type"] for i in dell["recentInteractions"]] == ["product_view", "page_view"]

    def test_no_interactions(self, sources):
        _, mock_fetch = sources
        mock_fetch.return_value = []

        result = _rankings()

        assert result["summary"]["brandsWithInteractions"] == 0
        assert [b["brand"] for b in result["brands"]] == ["Apple", "Dell"]
        assert result["brands"][0]["conversionRate"] == 0.0

    def test_single_brand(self, sources):
        result = _rankings(brand="apple")

        assert result["brand"]["totalInteractions"] == 4
        assert result["products"] == 2
        assert result["totalProducts"] == 2
        assert result["lastUpdated"] == NOW.isoformat()

    def test_single_brand_detailed(self, sources):
        result = _rankings(brand="Apple", detailed=True)
        assert [p["id"] for p in result["products"]] == ["apple-iphone-15", "apple-macbook-air"]

    def test_empty_catalog(self, sources):
        mock_catalog, mock_fetch = sources
        mock_catalog.return_value = []

        with pytest.raises(InternalError):
            _rankings()
        mock_fetch.assert_not_called()

    def test_interaction_fetch_failure_propagates(self, sources):
        _, mock_fetch = sources
        mock_fetch.side_effect = InternalError("Failed to fetch interactions")
        with pytest.raises(InternalError):
            _rankings()
