"""トップページのバナー."""

from __future__ import annotations

import logging

from storefront import db
from storefront.errors import NotFoundError, ValidationError
from storefront.models import Banner

logger = logging.getLogger(__name__)


def list_banners(active_only: bool = True) -> list[Banner]:
    """display_order 順. active_only=False は管理画面用."""
    return [Banner.from_row(row) for row in db.list_banners(active_only)]


def _from_body(body: dict) -> Banner:
    """camelCase のリクエストボディを Banner にする.

    Raises:
        ValidationError: title / imageUrl の欠落、displayOrder・isActive の型不正
    """
    title = body.get("title")
    image_url = body.get("imageUrl")
    if not title:
        raise ValidationError("title is required", field="title")
    if not image_url:
        raise ValidationError("imageUrl is required", field="imageUrl")

    display_order = body.get("displayOrder") or 1
    if isinstance(display_order, bool) or not isinstance(display_order, int):
        raise ValidationError("displayOrder must be an integer", field="displayOrder")
    is_active = body.get("isActive", True)
    if not isinstance(is_active, bool):
        raise ValidationError("isActive must be a boolean", field="isActive")

    return Banner(
        title=title,
        image_url=image_url,
        description=body.get("description") or None,
        link_url=body.get("linkUrl") or None,
        link_text=body.get("linkText") or None,
        is_active=is_active,
        display_order=display_order,
    )


def create_banner(body: dict) -> Banner:
    banner = _from_body(body)
    return Banner.from_row(db.insert_banner(banner.to_row()))


def update_banner(banner_id: int, body: dict) -> Banner:
    """バナーの全項目を置き換える.

    Raises:
        NotFoundError: 該当する id が無い
    """
    banner = _from_body(body)
    rows = db.update_banner(banner_id, banner.to_row())
    if not rows:
        raise NotFoundError("Banner not found")
    logger.info("バナー更新: id=%s", banner_id)
    return Banner.from_row(rows[0])


def delete_banner(banner_id: int) -> None:
    if not db.delete_banner(banner_id):
        raise NotFoundError("Banner not found")
    logger.info("バナー削除: id=%s", banner_id)
