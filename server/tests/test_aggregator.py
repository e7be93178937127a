"""aggregator モジュールのテスト."""

from datetime import datetime, timezone
from unittest.mock import patch

import pytest

from storefront.aggregator import apply_interaction, rebuild_from_log, rescore_all
from storefront.errors import InternalError
from storefront.models import Interaction
from storefront.ranking import ranking_cache
from storefront.scoring import ScoreWeights, ScoringConfig

NOW = datetime(2026, 2, 27, 12, 0, tzinfo=timezone.utc)
SCORING = ScoringConfig(weights=ScoreWeights(product_view=1, result_click=5, search=2))


class TestApplyInteraction:
    """apply_interaction のテスト."""

    @patch("storefront.db.increment_trending_counters")
    def test_increment_call(self, mock_increment):
        mock_increment.return_value = {"product_id": "xps-13", "brand": "Dell", "total_clicks": 1}
        interaction = Interaction(
            type="result_click", session_id="s1", timestamp="2026-02-27T10:00:00+00:00",
            product_id="dell-xps-13", brand="Dell",
        )

        record = apply_interaction(interaction, scoring=SCORING)

        kwargs = mock_increment.call_args.kwargs
        assert kwargs["product_id"] == "xps-13"
        assert (kwargs["views"], kwargs["clicks"], kwargs["searches"]) == (0, 1, 0)
        assert kwargs["at"] == "2026-02-27T10:00:00+00:00"
        assert kwargs["weights"] == {"product_view": 1, "result_click": 5, "search": 2}
        assert record.total_clicks == 1

    @patch("storefront.db.increment_trending_counters")
    def test_page_view_skipped(self, mock_increment):
        interaction = Interaction(type="page_view", session_id="s1", timestamp="2026-02-27T10:00:00+00:00")
        assert apply_interaction(interaction, scoring=SCORING) is None
        mock_increment.assert_not_called()

    @patch("storefront.db.increment_trending_counters")
    def test_storage_error_propagates(self, mock_increment):
        mock_increment.side_effect = InternalError("Failed to update product metrics")
        interaction = Interaction(
            type="search", session_id="s1", timestamp="2026-02-27T10:00:00+00:00", product_id="p1",
        )
        with pytest.raises(InternalError):
            apply_interaction(interaction, scoring=SCORING)

    def test_missing_product_gets_zero_admin_score(self, trending_table):
        interaction = Interaction(
            type="search", session_id="s1", timestamp="2026-02-27T10:00:00+00:00",
            product_id="p1", brand="Apple",
        )
        record = apply_interaction(interaction, scoring=SCORING)
        assert (record.total_views, record.total_clicks, record.total_searches) == (0, 0, 1)
        assert record.admin_score == 0


class TestRebuildFromLog:
    """rebuild_from_log のテスト."""

    @patch("storefront.db.rebuild_trending_counters")
    def test_single_db_call(self, mock_rebuild):
        mock_rebuild.return_value = 4

        assert rebuild_from_log(scoring=SCORING, now=NOW) == 4

        mock_rebuild.assert_called_once_with(
            {
                "mode": "simple",
                "weights": {"product_view": 1, "result_click": 5, "search": 2},
                "decay_window_hours": 168.0,
                "decay_floor": 0.1,
            },
            NOW.isoformat(),
        )

    @patch("storefront.db.list_trending_products")
    @patch("storefront.db.fetch_all_interactions")
    @patch("storefront.db.rebuild_trending_counters", return_value=0)
    def test_no_read_modify_write(self, mock_rebuild, mock_fetch, mock_list):
        """集計のために操作ログ・カウンタを読み出して書き戻さないこと."""
        rebuild_from_log(scoring=SCORING, now=NOW)
        mock_fetch.assert_not_called()
        mock_list.assert_not_called()

    @patch("storefront.db.rebuild_trending_counters", return_value=2)
    def test_invalidates_cache(self, mock_rebuild):
        ranking_cache.get(lambda: [])
        assert ranking_cache.dirty is False
        rebuild_from_log(scoring=SCORING, now=NOW)
        assert ranking_cache.dirty is True

    @patch("storefront.db.rebuild_trending_counters")
    def test_storage_error_propagates(self, mock_rebuild):
        mock_rebuild.side_effect = InternalError("Failed to rebuild trending products", code="57014")
        with pytest.raises(InternalError):
            rebuild_from_log(scoring=SCORING, now=NOW)


class TestRescoreAll:
    """rescore_all のテスト."""

    @patch("storefront.db.rescore_trending_products")
    def test_decayed_mode_passed(self, mock_rescore):
        mock_rescore.return_value = 10

        assert rescore_all(scoring=ScoringConfig(mode="decayed"), now=NOW) == 10

        scoring, now = mock_rescore.call_args.args
        assert scoring["mode"] == "decayed"
        assert scoring["weights"] == {"product_view": 3.0, "result_click": 5.0, "search": 1.5}
        assert now == "2026-02-27T12:00:00+00:00"
