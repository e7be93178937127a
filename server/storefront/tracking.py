"""ユーザー操作の記録."""

from __future__ import annotations

import logging

from storefront import aggregator, catalog, db
from storefront.errors import StorefrontError, ValidationError
from storefront.models import INTERACTION_TYPES, Interaction, parse_timestamp, utc_now_iso
from storefront.scoring import detect_brand

logger = logging.getLogger(__name__)


def parse_interaction(body: dict) -> Interaction:
    """リクエストボディ (camelCase) を検証して Interaction にする.

    Raises:
        ValidationError: type / sessionId の欠落、未知の type、不正な timestamp
    """
    interaction_type = body.get("type")
    session_id = body.get("sessionId")
    if not interaction_type:
        raise ValidationError("Missing required field: type", field="type")
    if not session_id:
        raise ValidationError("Missing required field: sessionId", field="sessionId")
    if interaction_type not in INTERACTION_TYPES:
        raise ValidationError(f"Unknown interaction type: {interaction_type}", field="type")

    timestamp = body.get("timestamp")
    if timestamp:
        try:
            timestamp = parse_timestamp(timestamp).isoformat()
        except (TypeError, ValueError, AttributeError):
            raise ValidationError("timestamp must be an ISO 8601 string", field="timestamp") from None
    else:
        timestamp = utc_now_iso()

    metadata = body.get("metadata")
    if metadata is not None and not isinstance(metadata, dict):
        raise ValidationError("metadata must be an object", field="metadata")

    return Interaction(
        type=interaction_type,
        session_id=str(session_id),
        timestamp=timestamp,
        product_id=body.get("productId") or None,
        brand=body.get("brand") or None,
        search_term=body.get("searchTerm") or None,
        metadata=metadata or None,
    )


def fill_search_brand(interaction: Interaction) -> Interaction:
    """ブランド指定の無い検索操作に、検索語から推定したブランドを補う.

    カタログが取得できない場合はブランド無しのまま記録する。
    """
    if interaction.type != "search" or not interaction.search_term or interaction.brand:
        return interaction
    try:
        brands = sorted({item.brand for item in catalog.fetch_catalog()})
    except StorefrontError as e:
        logger.warning("検索語からのブランド推定をスキップ: %s", e.message)
        return interaction

    brand = detect_brand(interaction.search_term, brands)
    if brand:
        logger.info("検索語からブランドを推定: %s → %s", interaction.search_term, brand)
        interaction.brand = brand
    return interaction


def record_interaction(body: dict) -> Interaction:
    """操作を追記し、トレンド集計に反映する.

    Returns:
        保存された操作

    Raises:
        ValidationError: 入力不正
        InternalError: 保存または集計の失敗 (再試行しない)
    """
    interaction = fill_search_brand(parse_interaction(body))
    stored = Interaction.from_row(db.insert_interaction(interaction.to_row()))
    aggregator.apply_interaction(interaction)
    return stored
