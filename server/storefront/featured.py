"""おすすめ商品."""

from __future__ import annotations

from storefront import db
from storefront.errors import NotFoundError, ValidationError
from storefront.models import FeaturedProduct


def list_featured(active_only: bool = True) -> list[FeaturedProduct]:
    return [FeaturedProduct.from_row(row) for row in db.list_featured_products(active_only)]


def add_featured(
    product_id: str, type: str = "featured", display_order: int = 0
) -> FeaturedProduct:
    if not product_id:
        raise ValidationError("productId is required", field="productId")
    if isinstance(display_order, bool) or not isinstance(display_order, int):
        raise ValidationError("displayOrder must be an integer", field="displayOrder")
    row = db.insert_featured_product({
        "product_id": product_id,
        "type": type or "featured",
        "display_order": display_order,
        "is_active": True,
    })
    return FeaturedProduct.from_row(row)


def remove_featured(featured_id: int) -> None:
    if not db.delete_featured_product(featured_id):
        raise NotFoundError("Featured product not found")
