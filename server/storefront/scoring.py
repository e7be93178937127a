"""トレンドスコア計算.

操作種別ごとのカウンタ加算と重み付きスコアの計算は純粋関数で行う。
DB 側の increment_trending_counters (減衰なし) と trending_score_of も同じ式で計算する。
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable

from storefront import config
from storefront.models import Interaction, parse_timestamp

logger = logging.getLogger(__name__)

# 操作種別 → カウンタ. page_view / category_view はスコアに寄与しない
COUNTER_FIELDS = {
    "product_view": "total_views",
    "result_click": "total_clicks",
    "search": "total_searches",
}

SCORE_MODES = ("simple", "decayed")


@dataclass(frozen=True)
class ScoreWeights:
    product_view: float = 3.0
    result_click: float = 5.0
    search: float = 1.5

    def as_dict(self) -> dict:
        return {
            "product_view": self.product_view,
            "result_click": self.result_click,
            "search": self.search,
        }


@dataclass(frozen=True)
class ScoringConfig:
    mode: str = "simple"
    weights: ScoreWeights = ScoreWeights()
    decay_window_hours: float = 168.0
    decay_floor: float = 0.1

    def __post_init__(self) -> None:
        if self.mode not in SCORE_MODES:
            raise ValueError(f"Unknown trending score mode: {self.mode}")

    @classmethod
    def from_settings(cls) -> "ScoringConfig":
        """config モジュールの値から生成する."""
        return cls(
            mode=config.TRENDING_SCORE_MODE,
            weights=ScoreWeights(
                product_view=config.WEIGHT_PRODUCT_VIEW,
                result_click=config.WEIGHT_RESULT_CLICK,
                search=config.WEIGHT_SEARCH,
            ),
            decay_window_hours=config.DECAY_WINDOW_HOURS,
            decay_floor=config.DECAY_FLOOR,
        )

    def as_dict(self) -> dict:
        return {
            "mode": self.mode,
            "weights": self.weights.as_dict(),
            "decay_window_hours": self.decay_window_hours,
            "decay_floor": self.decay_floor,
        }


@dataclass
class ProductCounts:
    """操作ログから集計した 1 商品分のカウンタ."""

    product_id: str
    brand: str
    views: int = 0
    clicks: int = 0
    searches: int = 0
    first_seen: datetime | None = None
    last_interaction: datetime | None = None


def round_score(value: float) -> int:
    """0.5 は切り上げる (Postgres の round(numeric) と同じ)."""
    return int(math.floor(value + 0.5)) if value >= 0 else -int(math.floor(-value + 0.5))


def weighted_sum(views: int, clicks: int, searches: int, weights: ScoreWeights) -> float:
    return (
        views * weights.product_view
        + clicks * weights.result_click
        + searches * weights.search
    )


def decay_factor(
    last_interaction: datetime | None, now: datetime, scoring: ScoringConfig
) -> float:
    """最終操作からの経過時間に応じた係数 (decay_floor 〜 1.0)."""
    if last_interaction is None:
        return 1.0
    hours = max(0.0, (now - last_interaction).total_seconds() / 3600)
    return max(scoring.decay_floor, 1 - hours / scoring.decay_window_hours)


def calculate_trending_score(
    views: int,
    clicks: int,
    searches: int,
    scoring: ScoringConfig,
    last_interaction: datetime | None = None,
    now: datetime | None = None,
) -> int:
    """カウンタからトレンドスコアを計算する.

    simple モードは重み付き合計、decayed モードはそれに減衰係数を掛ける。
    """
    score = weighted_sum(views, clicks, searches, scoring.weights)
    if scoring.mode == "decayed":
        score *= decay_factor(last_interaction, now or datetime.now(timezone.utc), scoring)
    return round_score(score)


def counter_deltas(interaction_type: str) -> tuple[int, int, int]:
    """(views, clicks, searches) の加算量."""
    field = COUNTER_FIELDS.get(interaction_type)
    return (
        1 if field == "total_views" else 0,
        1 if field == "total_clicks" else 0,
        1 if field == "total_searches" else 0,
    )


def trending_key(product_id: str | None, brand: str | None) -> str | None:
    """集計キーを返す.

    product_id が "{brand}-" で始まる場合はその接頭辞を除く
    (カタログ ID "dell-xps-13" と SKU "xps-13" を同じ商品として扱う)。
    """
    if not product_id:
        return None
    if brand:
        prefix = f"{brand}-".lower()
        if product_id.lower().startswith(prefix) and len(product_id) > len(prefix):
            return product_id[len(prefix):]
    return product_id


# 検索語に含まれる製品名・略称 → ブランド
BRAND_VARIATIONS = {
    "iphone": "APPLE",
    "ipad": "APPLE",
    "macbook": "APPLE",
    "imac": "APPLE",
    "mac": "APPLE",
    "apple": "APPLE",
    "pixel": "GOOGLE",
    "google": "GOOGLE",
    "samsung": "SAMSUNG",
    "galaxy": "SAMSUNG",
    "dell": "DELL",
    "latitude": "DELL",
    "inspiron": "DELL",
    "xps": "DELL",
    "hp": "HP",
    "hewlett": "HP",
    "pavilion": "HP",
    "elitebook": "HP",
    "lenovo": "LENOVO",
    "thinkpad": "LENOVO",
    "ideapad": "LENOVO",
    "asus": "ASUS",
    "rog": "ASUS",
    "acer": "ACER",
    "aspire": "ACER",
    "msi": "MSI",
    "razer": "RAZER",
    "blade": "RAZER",
}


def detect_brand(search_term: str, brands: Iterable[str] = ()) -> str | None:
    """検索語からブランドを推定する.

    カタログのブランド名を含む場合はそれを優先し、次に BRAND_VARIATIONS を部分一致で引く。
    後者の結果はカタログに同名 (大文字小文字無視) のブランドがあればその表記にそろえる。
    """
    if not search_term:
        return None
    term = search_term.lower()
    brands = [b for b in brands if b]
    for brand in brands:
        if brand.lower() in term:
            return brand

    for word, brand in BRAND_VARIATIONS.items():
        if word in term:
            for known in brands:
                if known.lower() == brand.lower():
                    return known
            return brand
    return None


def is_trackable(interaction: Interaction) -> bool:
    """カウンタに反映すべき操作かどうか."""
    if interaction.type not in COUNTER_FIELDS:
        return False
    if not interaction.product_id:
        return False
    if "undefined" in interaction.product_id:
        return False
    if interaction.brand == "undefined":
        return False
    return True


def aggregate_counts(interactions: Iterable[Interaction]) -> dict[str, ProductCounts]:
    """操作ログを商品ごとのカウンタに畳み込む.

    加算と最大値・最小値のみで構成するため、入力順に依存しない。
    ブランドは最も古い操作のもの (同時刻はブランド名の昇順で先頭) を採用する。
    """
    totals: dict[str, ProductCounts] = {}
    for interaction in interactions:
        if not is_trackable(interaction):
            continue
        key = trending_key(interaction.product_id, interaction.brand)
        at = parse_timestamp(interaction.timestamp)
        brand = interaction.brand or "Unknown"

        counts = totals.get(key)
        if counts is None:
            counts = totals[key] = ProductCounts(product_id=key, brand=brand, first_seen=at)
        elif _earlier(at, brand, counts.first_seen, counts.brand):
            counts.first_seen = at
            counts.brand = brand

        views, clicks, searches = counter_deltas(interaction.type)
        counts.views += views
        counts.clicks += clicks
        counts.searches += searches
        if at is not None and (counts.last_interaction is None or at > counts.last_interaction):
            counts.last_interaction = at

    logger.debug("操作ログを集計: 商品 %d 件", len(totals))
    return totals


def _earlier(at, brand, current_at, current_brand) -> bool:
    if at is None:
        return False
    if current_at is None:
        return True
    return (at, brand) < (current_at, current_brand)
