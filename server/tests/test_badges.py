"""badges / featured モジュールのテスト."""

from datetime import datetime, timezone
from unittest.mock import patch

import pytest

from storefront.badges import create_badge, remove_badge
from storefront.errors import NotFoundError, ValidationError
from storefront.featured import add_featured, remove_featured

NOW = datetime(2026, 2, 27, 12, 0, tzinfo=timezone.utc)


def _badge_row(product_id="p1", position=1, duration=60):
    return {
        "id": 1,
        "product_id": product_id,
        "position": position,
        "duration": duration,
        "start_time": "2026-02-27T12:00:00+00:00",
        "end_time": "2026-02-27T13:00:00+00:00",
        "is_active": True,
    }


class TestCreateBadge:
    """create_badge のテスト."""

    @patch("storefront.db.occupy_fire_badge_position")
    def test_end_time(self, mock_occupy):
        mock_occupy.return_value = _badge_row()

        badge = create_badge("p1", 1, 60, now=NOW)

        mock_occupy.assert_called_once_with(
            "p1", 1, 60, "2026-02-27T12:00:00+00:00", "2026-02-27T13:00:00+00:00",
        )
        assert badge.position == 1
        assert badge.to_dict()["isActive"] is True

    @pytest.mark.parametrize("position,duration", [(0, 60), (1, 0), (-1, 60), ("1", 60), (1, 1.5)])
    @patch("storefront.db.occupy_fire_badge_position")
    def test_invalid(self, mock_occupy, position, duration):
        with pytest.raises(ValidationError):
            create_badge("p1", position, duration, now=NOW)
        mock_occupy.assert_not_called()

    def test_missing_product(self):
        with pytest.raises(ValidationError):
            create_badge("", 1, 60)


class TestRemoveBadge:
    """remove_badge のテスト."""

    @patch("storefront.db.deactivate_fire_badge")
    def test_removed(self, mock_deactivate):
        mock_deactivate.return_value = [dict(_badge_row(), is_active=False)]
        badge = remove_badge("p1")
        assert badge.is_active is False

    @patch("storefront.db.deactivate_fire_badge")
    def test_not_found(self, mock_deactivate):
        mock_deactivate.return_value = []
        with pytest.raises(NotFoundError):
            remove_badge("p1")


class TestFeatured:
    """featured モジュールのテスト."""

    @patch("storefront.db.insert_featured_product")
    def test_add(self, mock_insert):
        mock_insert.side_effect = lambda row: dict(row, id=3)
        item = add_featured("p1", display_order=2)
        assert item.to_dict() == {
            "id": 3, "productId": "p1", "type": "featured", "isActive": True, "displayOrder": 2,
        }

    def test_add_invalid_order(self):
        with pytest.raises(ValidationError):
            add_featured("p1", display_order="first")

    @patch("storefront.db.delete_featured_product")
    def test_remove_not_found(self, mock_delete):
        mock_delete.return_value = []
        with pytest.raises(NotFoundError):
            remove_featured(5)
