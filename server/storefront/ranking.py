"""トレンドランキング — 順位付け・スナップショットキャッシュ・管理者スコア.

合計スコア = trending_score + admin_score。合計の降順、同点は product_id の
昇順で並べ、1 から N までの連番を振る。
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Callable

from storefront import config, db
from storefront.errors import NotFoundError, ValidationError
from storefront.models import (
    ProductTrendingRecord,
    RankedProduct,
    RankedSnapshot,
    utc_now_iso,
)
from storefront.scoring import trending_key

logger = logging.getLogger(__name__)

RANKING_MODES = ("live", "materialized")


def rank_products(records: list[ProductTrendingRecord]) -> list[RankedProduct]:
    """合計スコアで並べ替え、順位を振る."""
    ordered = sorted(
        records,
        key=lambda r: (-(r.trending_score + r.admin_score), r.product_id),
    )
    return [RankedProduct(record=r, rank=i) for i, r in enumerate(ordered, start=1)]


class RankingCache:
    """ランキングのスナップショット.

    trending_products への書き込みは必ず ``invalidate()`` を呼ぶ。
    読み出しは dirty・期限切れ・強制更新のいずれかで再構築する。
    再構築 (DB 読み出し) はロックの外で行い、ロックは状態の参照・差し替えにだけ使う。
    """

    def __init__(self, max_age_seconds: float = config.RANKING_CACHE_SECONDS) -> None:
        self.max_age = timedelta(seconds=max_age_seconds)
        self.dirty = True
        self._ranked: list[RankedProduct] = []
        self._built_at: datetime | None = None
        self._generation = 0
        self._lock = threading.Lock()

    def invalidate(self) -> None:
        with self._lock:
            self.dirty = True
            self._generation += 1

    def get(
        self,
        build: Callable[[], list[RankedProduct]],
        force_refresh: bool = False,
    ) -> tuple[list[RankedProduct], datetime]:
        """スナップショットと構築時刻を返す.

        build が例外を送出した場合はキャッシュを dirty のまま残す。
        構築中に invalidate() された結果は返すが保存しない (次の読み出しで作り直す)。
        """
        with self._lock:
            if not (force_refresh or self._is_stale()):
                return list(self._ranked), self._built_at
            generation = self._generation

        ranked = build()
        built_at = datetime.now(timezone.utc)

        with self._lock:
            if self._generation == generation:
                self._ranked = ranked
                self._built_at = built_at
                self.dirty = False
                logger.info("ランキングを再構築: %d 件", len(ranked))
            else:
                logger.info("構築中に更新があったためスナップショットを保存しない")
        return list(ranked), built_at

    def _is_stale(self) -> bool:
        if self.dirty or self._built_at is None:
            return True
        return datetime.now(timezone.utc) - self._built_at >= self.max_age


ranking_cache = RankingCache()


def _build_ranking() -> list[RankedProduct]:
    records = [ProductTrendingRecord.from_row(row) for row in db.list_trending_products()]
    return rank_products(records)


def get_ranked(
    limit: int | None = None,
    force_refresh: bool = False,
    brand: str | None = None,
    mode: str | None = None,
) -> RankedSnapshot:
    """ランキングを返す.

    Args:
        limit: 先頭から返す件数 (None で全件)
        force_refresh: materialized モードでもスナップショットを作り直す
        brand: 指定時はブランド (大文字小文字無視) で絞り込み、順位を振り直す
        mode: "live" or "materialized" (None で設定値)

    Raises:
        InternalError: 集計元の取得に失敗した場合. 空リストで代用しない。
    """
    if limit is not None and limit < 1:
        raise ValidationError("limit must be a positive integer", field="limit")

    mode = mode or config.RANKING_MODE
    if mode not in RANKING_MODES:
        raise ValueError(f"Unknown ranking mode: {mode}")

    if mode == "materialized":
        ranked, built_at = ranking_cache.get(_build_ranking, force_refresh=force_refresh)
    else:
        ranked, built_at = _build_ranking(), datetime.now(timezone.utc)

    if brand:
        ranked = rank_products(
            [p.record for p in ranked if p.record.brand.lower() == brand.lower()]
        )

    total = len(ranked)
    if limit is not None:
        ranked = ranked[:limit]
    return RankedSnapshot(trending=ranked, total_products=total, last_updated=built_at)


def _validate_score(value, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{field} must be an integer", field=field)
    if value < 0:
        raise ValidationError(f"{field} must not be negative", field=field)
    return value


def set_admin_score(product_id: str, value: int) -> None:
    """管理者スコアを設定する. カウンタと trending_score には触れない.

    Raises:
        ValidationError: 整数でない・負の値
        NotFoundError: 商品が trending_products に無い
    """
    if not product_id:
        raise ValidationError("productId is required", field="productId")
    score = _validate_score(value, "score")

    updated = db.update_admin_score(product_id, score, utc_now_iso())
    if not updated:
        raise NotFoundError(f"Trending product not found: {product_id}")
    ranking_cache.invalidate()
    logger.info("admin_score を更新: product_id=%s, score=%d", product_id, score)


def add_product(
    product_id: str,
    name: str,
    brand: str,
    seed_trending_score: int = 0,
    seed_admin_score: int = 0,
) -> ProductTrendingRecord:
    """トレンド商品を手動で追加する (カウンタは 0).

    product_id は操作の集計と同じトレンドキーに正規化して保存する
    (カタログ ID "apple-iphone-15" は "iphone-15")。

    Raises:
        ValidationError: 必須項目の欠落・不正なスコア
        ConflictError: product_id が既に存在する
    """
    missing = [
        label
        for label, value in (("productId", product_id), ("productName", name), ("brand", brand))
        if not value
    ]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}", field=missing[0])
    seed_trending_score = _validate_score(seed_trending_score, "seedTrendingScore")
    seed_admin_score = _validate_score(seed_admin_score, "seedAdminScore")
    product_id = trending_key(product_id, brand)

    now = utc_now_iso()
    row = db.insert_trending_product({
        "product_id": product_id,
        "brand": brand,
        "name": name,
        "total_views": 0,
        "total_clicks": 0,
        "total_searches": 0,
        "last_interaction": now,
        "trending_score": seed_trending_score,
        "admin_score": seed_admin_score,
        "created_at": now,
        "updated_at": now,
    })
    ranking_cache.invalidate()
    return ProductTrendingRecord.from_row(row)
