"""ブランド別の操作分析.

操作ログをブランドごとに振り分け、操作種別の件数・ブランドスコア・
上位商品などを集計する。ブランドの一覧はカタログから取る。
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from storefront import catalog, db
from storefront.errors import InternalError
from storefront.models import CatalogItem, Interaction
from storefront.scoring import (
    ScoringConfig,
    aggregate_counts,
    calculate_trending_score,
    detect_brand,
    trending_key,
)

logger = logging.getLogger(__name__)

# ブランドスコアの重み (未知の種別は 1)
BRAND_INTERACTION_WEIGHTS = {
    "page_view": 1.0,
    "category_view": 2.0,
    "product_view": 3.0,
    "result_click": 5.0,
    "search": 1.5,
}

TOP_PRODUCTS = 5
RECENT_INTERACTIONS = 10


def _ratio(numerator: int, denominator: int) -> float:
    return round(numerator / denominator, 4) if denominator else 0.0


def _matches(
    interaction: Interaction, brand: str, search_brand: str | None
) -> bool:
    """ブランド一致・商品 ID への包含・検索語からの推定のいずれかで判定する."""
    name = brand.lower()
    if interaction.brand and interaction.brand.lower() == name:
        return True
    if interaction.product_id and name in interaction.product_id.lower():
        return True
    return bool(search_brand) and search_brand.lower() == name


def brand_metrics(
    brand: str,
    interactions: list[Interaction],
    items: list[CatalogItem],
    search_brands: list[str | None],
    scoring: ScoringConfig,
    now: datetime,
) -> dict:
    """1 ブランド分の集計値.

    Args:
        interactions: 操作ログ (古い順)
        search_brands: interactions と同じ並びの、検索語から推定したブランド
    """
    matched = [
        i for i, detected in zip(interactions, search_brands)
        if _matches(i, brand, detected)
    ]
    products = [item for item in items if item.brand.lower() == brand.lower()]

    by_type = {t: 0 for t in BRAND_INTERACTION_WEIGHTS}
    for i in matched:
        by_type[i.type] = by_type.get(i.type, 0) + 1
    views, clicks, searches = by_type["product_view"], by_type["result_click"], by_type["search"]
    brand_score = sum(BRAND_INTERACTION_WEIGHTS.get(i.type, 1.0) for i in matched)

    names = {trending_key(item.id, item.brand): item.name for item in items}
    top = []
    for key, c in aggregate_counts(matched).items():
        top.append({
            "productId": key,
            "name": names.get(key, key),
            "views": c.views,
            "clicks": c.clicks,
            "searches": c.searches,
            "score": calculate_trending_score(
                c.views, c.clicks, c.searches, scoring,
                last_interaction=c.last_interaction, now=now,
            ),
        })
    top.sort(key=lambda p: (-p["score"], p["productId"]))

    recent = [
        {
            "type": i.type,
            "productId": i.product_id,
            "searchTerm": i.search_term,
            "timestamp": i.timestamp,
        }
        for i in reversed(matched[-RECENT_INTERACTIONS:])
    ]

    return {
        "brand": brand,
        "totalInteractions": len(matched),
        "brandScore": brand_score,
        "productCount": len(products),
        "interactionBreakdown": {
            "pageViews": by_type["page_view"],
            "categoryViews": by_type["category_view"],
            "productViews": views,
            "resultClicks": clicks,
            "searches": searches,
        },
        "conversionRate": _ratio(clicks, views),
        "averagePrice": (
            round(sum(p.price for p in products) / len(products), 2) if products else 0.0
        ),
        "topProducts": top[:TOP_PRODUCTS],
        "recentInteractions": recent,
        "performanceMetrics": {
            "engagementRate": _ratio(clicks + views, len(matched)),
            "searchToClickRate": _ratio(clicks, searches),
            "viewToClickRate": _ratio(clicks, views),
        },
        "lastUpdated": now.isoformat(),
    }


def brand_rankings(
    brand: str | None = None,
    detailed: bool = False,
    scoring: ScoringConfig | None = None,
    now: datetime | None = None,
) -> dict:
    """ブランド別の分析結果.

    brand 指定時はそのブランドのみ、未指定時は全ブランドをブランドスコアの降順で返す。

    Raises:
        InternalError: カタログ・操作ログの取得失敗、カタログが空
    """
    scoring = scoring or ScoringConfig.from_settings()
    now = now or datetime.now(timezone.utc)

    items = catalog.fetch_catalog()
    if not items:
        raise InternalError("No catalog data available")
    catalog_brands = sorted({item.brand for item in items})

    interactions = [Interaction.from_row(row) for row in db.fetch_all_interactions()]
    search_brands = [
        detect_brand(i.search_term, catalog_brands) if i.search_term else None
        for i in interactions
    ]

    if brand:
        metrics = brand_metrics(brand, interactions, items, search_brands, scoring, now)
        products = [item for item in items if item.brand.lower() == brand.lower()]
        return {
            "brand": metrics,
            "products": [p.to_dict() for p in products] if detailed else len(products),
            "totalProducts": len(products),
            "lastUpdated": now.isoformat(),
        }

    brands = [
        brand_metrics(name, interactions, items, search_brands, scoring, now)
        for name in catalog_brands
    ]
    brands.sort(key=lambda b: (-b["brandScore"], b["brand"]))
    logger.info("ブランド分析: ブランド %d 件, 操作 %d 件", len(brands), len(interactions))
    return {
        "brands": brands,
        "totalBrands": len(brands),
        "totalProducts": len(items),
        "summary": {
            "totalInteractions": len(interactions),
            "brandsWithInteractions": sum(1 for b in brands if b["totalInteractions"] > 0),
            "topPerformingBrand": brands[0]["brand"] if brands else "None",
        },
        "lastUpdated": now.isoformat(),
    }
