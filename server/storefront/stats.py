"""管理ダッシュボードの集計値.

各項目は独立に取得し、失敗した項目だけ 0 にして残りは返す。
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from storefront import catalog, db
from storefront.errors import StorefrontError

logger = logging.getLogger(__name__)

ACTIVE_WINDOW = timedelta(hours=24)


def dashboard_stats(now: datetime | None = None) -> dict:
    now = now or datetime.now(timezone.utc)
    stats = {
        "totalBrands": 0,
        "totalProducts": 0,
        "trendingProducts": 0,
        "activeUsers": 0,
        "totalInteractions": 0,
        "fireBadges": 0,
        "lastUpdated": now.isoformat(),
    }

    try:
        items = catalog.fetch_catalog()
        stats["totalBrands"] = len({item.brand for item in items})
        stats["totalProducts"] = len(items)
    except StorefrontError as e:
        logger.error("カタログ集計に失敗: %s", e.message)

    parts = (
        ("trendingProducts", db.count_trending_products),
        ("activeUsers", lambda: len(set(db.active_session_ids((now - ACTIVE_WINDOW).isoformat())))),
        ("totalInteractions", db.count_interactions),
        ("fireBadges", db.count_active_fire_badges),
    )
    for key, fetch in parts:
        try:
            stats[key] = fetch()
        except StorefrontError as e:
            logger.error("%s の集計に失敗: %s", key, e.message)

    return stats
