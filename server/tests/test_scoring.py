"""scoring モジュールのユニットテスト."""

import itertools
from datetime import datetime, timedelta, timezone

import pytest

from storefront.models import Interaction
from storefront.scoring import (
    ScoreWeights,
    ScoringConfig,
    aggregate_counts,
    calculate_trending_score,
    counter_deltas,
    detect_brand,
    is_trackable,
    round_score,
    trending_key,
)

NOW = datetime(2026, 2, 27, 12, 0, tzinfo=timezone.utc)


def _interaction(type_, product_id="p1", brand="Apple", minutes=0):
    return Interaction(
        type=type_,
        session_id="s1",
        timestamp=(NOW + timedelta(minutes=minutes)).isoformat(),
        product_id=product_id,
        brand=brand,
    )


class TestCalculateTrendingScore:
    """calculate_trending_score のテスト."""

    def test_simple_weighted_sum(self):
        """閲覧 3 件 + 検索 1 件、重み view=1, search=2 でスコア 5."""
        scoring = ScoringConfig(weights=ScoreWeights(product_view=1, result_click=5, search=2))
        assert calculate_trending_score(3, 0, 1, scoring) == 5

    def test_default_weights(self):
        scoring = ScoringConfig()
        # 2*3.0 + 1*5.0 + 1*1.5 = 12.5 → 13
        assert calculate_trending_score(2, 1, 1, scoring) == 13

    def test_simple_ignores_age(self):
        scoring = ScoringConfig()
        old = NOW - timedelta(days=30)
        assert calculate_trending_score(10, 0, 0, scoring, last_interaction=old, now=NOW) == 30

    def test_decayed_recent_is_full_score(self):
        scoring = ScoringConfig(mode="decayed")
        assert calculate_trending_score(10, 0, 0, scoring, last_interaction=NOW, now=NOW) == 30

    def test_decayed_half_window(self):
        scoring = ScoringConfig(mode="decayed", decay_window_hours=168)
        half = NOW - timedelta(hours=84)
        assert calculate_trending_score(10, 0, 0, scoring, last_interaction=half, now=NOW) == 15

    def test_decayed_floor(self):
        scoring = ScoringConfig(mode="decayed", decay_floor=0.1)
        old = NOW - timedelta(days=60)
        assert calculate_trending_score(10, 0, 0, scoring, last_interaction=old, now=NOW) == 3

    def test_unknown_mode(self):
        with pytest.raises(ValueError):
            ScoringConfig(mode="exponential")


class TestRoundScore:
    """round_score のテスト."""

    def test_half_rounds_up(self):
        assert round_score(2.5) == 3
        assert round_score(12.5) == 13

    def test_below_half(self):
        assert round_score(4.49) == 4


class TestCounterDeltas:
    """counter_deltas のテスト."""

    def test_mapping(self):
        assert counter_deltas("product_view") == (1, 0, 0)
        assert counter_deltas("result_click") == (0, 1, 0)
        assert counter_deltas("search") == (0, 0, 1)

    def test_no_counter(self):
        assert counter_deltas("page_view") == (0, 0, 0)
        assert counter_deltas("category_view") == (0, 0, 0)


class TestTrendingKey:
    """trending_key のテスト."""

    def test_strip_brand_prefix(self):
        assert trending_key("dell-xps-13", "Dell") == "xps-13"

    def test_keep_without_prefix(self):
        assert trending_key("xps-13", "Dell") == "xps-13"

    def test_no_brand(self):
        assert trending_key("dell-xps-13", None) == "dell-xps-13"

    def test_prefix_only(self):
        assert trending_key("dell-", "Dell") == "dell-"

    def test_missing_product(self):
        assert trending_key(None, "Dell") is None


class TestDetectBrand:
    """detect_brand のテスト."""

    def test_catalog_brand_first(self):
        assert detect_brand("Lenovo ThinkPad X1", ["Lenovo", "Dell"]) == "Lenovo"

    def test_catalog_brand_preferred_over_variation(self):
        """製品名 (macbook) よりカタログのブランド名を優先する."""
        assert detect_brand("dell vs macbook", ["Dell", "Apple"]) == "Dell"

    def test_variation(self):
        assert detect_brand("galaxy s24") == "SAMSUNG"

    def test_variation_uses_catalog_spelling(self):
        assert detect_brand("pixel 8", ["Google", "Apple"]) == "Google"

    @pytest.mark.parametrize("term", ["", "usb cable"])
    def test_no_match(self, term):
        assert detect_brand(term, ["Apple"]) is None


class TestIsTrackable:
    """is_trackable のテスト."""

    def test_product_view(self):
        assert is_trackable(_interaction("product_view"))

    def test_page_view_skipped(self):
        assert not is_trackable(_interaction("page_view"))

    def test_without_product(self):
        assert not is_trackable(_interaction("search", product_id=None))

    def test_undefined_values(self):
        assert not is_trackable(_interaction("product_view", product_id="undefined-unknown"))
        assert not is_trackable(_interaction("product_view", brand="undefined"))


class TestAggregateCounts:
    """aggregate_counts のテスト."""

    def test_counts_per_product(self):
        interactions = [
            _interaction("product_view"),
            _interaction("product_view", minutes=1),
            _interaction("result_click", minutes=2),
            _interaction("search", minutes=3),
            _interaction("page_view", minutes=4),
            _interaction("product_view", product_id="apple-p2", minutes=5),
        ]
        counts = aggregate_counts(interactions)

        assert set(counts) == {"p1", "p2"}
        p1 = counts["p1"]
        assert (p1.views, p1.clicks, p1.searches) == (2, 1, 1)
        assert p1.last_interaction == NOW + timedelta(minutes=3)
        assert counts["p2"].views == 1

    def test_order_independent(self):
        """処理順によらず同じカウンタ・最終操作時刻・ブランドになること."""
        interactions = [
            _interaction("product_view", brand="Apple", minutes=0),
            _interaction("result_click", brand="apple", minutes=1),
            _interaction("search", brand="Apple", minutes=2),
            _interaction("product_view", brand="Apple", minutes=3),
        ]
        expected = aggregate_counts(interactions)["p1"]
        for perm in itertools.permutations(interactions):
            got = aggregate_counts(perm)["p1"]
            assert (got.views, got.clicks, got.searches) == (
                expected.views, expected.clicks, expected.searches,
            )
            assert got.last_interaction == expected.last_interaction
            assert got.brand == expected.brand == "Apple"

    def test_counter_total_matches_countable_interactions(self):
        types = ["product_view", "search", "page_view", "result_click", "category_view", "search"]
        interactions = [_interaction(t, minutes=i) for i, t in enumerate(types)]
        p1 = aggregate_counts(interactions)["p1"]
        assert p1.views + p1.clicks + p1.searches == 4
