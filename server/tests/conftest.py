"""共通フィクスチャ."""

from unittest.mock import patch

import pytest

from storefront.errors import ConflictError
from storefront.ranking import ranking_cache


class FakeTrendingTable:
    """trending_products と increment_trending_counters 関数のインメモリ版."""

    def __init__(self):
        self.rows: dict[str, dict] = {}

    def increment(self, product_id, brand, name, views, clicks, searches, at, weights):
        row = self.rows.get(product_id)
        if row is None:
            row = self.rows[product_id] = {
                "product_id": product_id,
                "brand": brand,
                "name": name,
                "total_views": 0,
                "total_clicks": 0,
                "total_searches": 0,
                "last_interaction": at,
                "trending_score": 0,
                "admin_score": 0,
            }
        row["total_views"] += views
        row["total_clicks"] += clicks
        row["total_searches"] += searches
        row["last_interaction"] = max(row["last_interaction"], at)
        score = (
            row["total_views"] * weights["product_view"]
            + row["total_clicks"] * weights["result_click"]
            + row["total_searches"] * weights["search"]
        )
        row["trending_score"] = int(score + 0.5)
        return dict(row)

    def insert(self, row):
        if row["product_id"] in self.rows:
            raise ConflictError("Duplicate key while trying to add trending product")
        self.rows[row["product_id"]] = dict(row)
        return dict(row)

    def list(self):
        return [dict(row) for _, row in sorted(self.rows.items())]

    def update_admin_score(self, product_id, score, updated_at):
        row = self.rows.get(product_id)
        if row is None:
            return []
        row["admin_score"] = score
        row["updated_at"] = updated_at
        return [dict(row)]


@pytest.fixture(autouse=True)
def reset_ranking_cache():
    ranking_cache.invalidate()
    yield
    ranking_cache.invalidate()


@pytest.fixture
def trending_table():
    """db のトレンド商品関連関数をインメモリテーブルに差し替える."""
    table = FakeTrendingTable()
    with patch("storefront.db.increment_trending_counters", side_effect=table.increment), \
            patch("storefront.db.list_trending_products", side_effect=table.list), \
            patch("storefront.db.update_admin_score", side_effect=table.update_admin_score), \
            patch("storefront.db.insert_trending_product", side_effect=table.insert):
        yield table
