"""操作ログ → 商品ごとのカウンタ・トレンドスコアへの反映.

- apply_interaction: 1 件ずつ (記録直後に呼ばれる)
- rebuild_from_log: 操作ログ全件から作り直す
- rescore_all: 保存済みカウンタからスコアだけ再計算 (decayed モードの減衰を反映)
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from storefront import db
from storefront.models import Interaction, ProductTrendingRecord
from storefront.ranking import ranking_cache
from storefront.scoring import (
    ScoringConfig,
    counter_deltas,
    is_trackable,
    trending_key,
)

logger = logging.getLogger(__name__)


def apply_interaction(
    interaction: Interaction, scoring: ScoringConfig | None = None
) -> ProductTrendingRecord | None:
    """操作 1 件をカウンタに反映する.

    加算は DB 側で原子的に行う。対象外の操作は None を返す。
    """
    if not is_trackable(interaction):
        logger.info("トレンド対象外の操作をスキップ: type=%s", interaction.type)
        return None

    scoring = scoring or ScoringConfig.from_settings()
    key = trending_key(interaction.product_id, interaction.brand)
    views, clicks, searches = counter_deltas(interaction.type)

    row = db.increment_trending_counters(
        product_id=key,
        brand=interaction.brand or "Unknown",
        name=key,
        views=views,
        clicks=clicks,
        searches=searches,
        at=interaction.timestamp,
        weights=scoring.weights.as_dict(),
    )
    ranking_cache.invalidate()
    logger.info("カウンタ更新: product_id=%s, type=%s", key, interaction.type)
    return ProductTrendingRecord.from_row(row) if row else None


def rebuild_from_log(
    scoring: ScoringConfig | None = None, now: datetime | None = None
) -> int:
    """操作ログ全件からカウンタとスコアを作り直す.

    集計と書き込みは DB 関数 rebuild_trending_counters の 1 トランザクションで行う。
    ログに現れない既存商品はカウンタ 0 になる。admin_score・name は保持する。

    Returns:
        更新した商品数
    """
    scoring = scoring or ScoringConfig.from_settings()
    now = now or datetime.now(timezone.utc)

    updated = db.rebuild_trending_counters(scoring.as_dict(), now.isoformat())
    ranking_cache.invalidate()
    logger.info("トレンド集計を再構築: 商品 %d 件 (mode=%s)", updated, scoring.mode)
    return updated


def rescore_all(scoring: ScoringConfig | None = None, now: datetime | None = None) -> int:
    """保存済みカウンタから trending_score を再計算する. カウンタは変更しない."""
    scoring = scoring or ScoringConfig.from_settings()
    now = now or datetime.now(timezone.utc)

    updated = db.rescore_trending_products(scoring.as_dict(), now.isoformat())
    ranking_cache.invalidate()
    logger.info("トレンドスコアを再計算: %d 件", updated)
    return updated
