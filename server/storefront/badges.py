"""手動ファイヤーバッジ."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from storefront import db
from storefront.errors import NotFoundError, ValidationError
from storefront.models import ManualFireBadge, utc_now_iso

logger = logging.getLogger(__name__)


def list_badges() -> list[ManualFireBadge]:
    return [ManualFireBadge.from_row(row) for row in db.list_fire_badges()]


def create_badge(
    product_id: str, position: int, duration: int, now: datetime | None = None
) -> ManualFireBadge:
    """位置にバッジを付ける. 位置に有効なバッジがあれば無効化して置き換える.

    Args:
        duration: 表示時間 (分)
    """
    if not product_id or not position or not duration:
        raise ValidationError("Missing required fields: productId, position, duration")
    for name, value in (("position", position), ("duration", duration)):
        if isinstance(value, bool) or not isinstance(value, int) or value < 1:
            raise ValidationError(f"{name} must be a positive integer", field=name)

    start = now or datetime.now(timezone.utc)
    end = start + timedelta(minutes=duration)
    row = db.occupy_fire_badge_position(
        product_id, position, duration, start.isoformat(), end.isoformat()
    )
    return ManualFireBadge.from_row(row)


def remove_badge(product_id: str) -> ManualFireBadge:
    """商品の有効なバッジを無効化する.

    Raises:
        NotFoundError: 有効なバッジが無い
    """
    if not product_id:
        raise ValidationError("Product ID is required", field="productId")
    rows = db.deactivate_fire_badge(product_id, utc_now_iso())
    if not rows:
        raise NotFoundError("Manual fire badge not found")
    logger.info("ファイヤーバッジ解除: product_id=%s", product_id)
    return ManualFireBadge.from_row(rows[0])
