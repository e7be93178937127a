"""データモデル定義.

DB 行は snake_case、API レスポンスは camelCase。変換は各モデルの
``from_row`` / ``to_row`` / ``to_dict`` に閉じる。
"""

from dataclasses import dataclass
from datetime import datetime, timezone

INTERACTION_TYPES = (
    "page_view",
    "category_view",
    "product_view",
    "result_click",
    "search",
)


def parse_timestamp(value: str | datetime | None) -> datetime | None:
    """ISO 8601 文字列を timezone 付き datetime に変換する.

    タイムゾーン指定が無い値は UTC とみなす。
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class Interaction:
    """ユーザー操作ログの 1 件 (追記のみ)."""

    type: str  # INTERACTION_TYPES のいずれか
    session_id: str
    timestamp: str  # ISO 8601
    product_id: str | None = None
    brand: str | None = None
    search_term: str | None = None
    metadata: dict | None = None
    id: int | None = None  # DB 採番

    def to_row(self) -> dict:
        """INSERT 用の行. 値の無い任意項目はカラムごと省く."""
        row = {
            "type": self.type,
            "session_id": self.session_id,
            "timestamp": self.timestamp,
        }
        if self.product_id:
            row["product_id"] = self.product_id
        if self.brand:
            row["brand"] = self.brand
        if self.search_term:
            row["search_term"] = self.search_term
        if self.metadata:
            row["metadata"] = self.metadata
        return row

    @classmethod
    def from_row(cls, row: dict) -> "Interaction":
        return cls(
            type=row["type"],
            session_id=row["session_id"],
            timestamp=row["timestamp"],
            product_id=row.get("product_id"),
            brand=row.get("brand"),
            search_term=row.get("search_term"),
            metadata=row.get("metadata"),
            id=row.get("id"),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type,
            "sessionId": self.session_id,
            "timestamp": self.timestamp,
            "productId": self.product_id,
            "brand": self.brand,
            "searchTerm": self.search_term,
            "metadata": self.metadata,
        }


@dataclass
class ProductTrendingRecord:
    """trending_products テーブルの 1 行."""

    product_id: str  # トレンドキー (一意)
    brand: str
    name: str
    total_views: int = 0
    total_clicks: int = 0
    total_searches: int = 0
    last_interaction: str | None = None
    trending_score: int = 0
    admin_score: int = 0
    created_at: str | None = None
    updated_at: str | None = None

    @classmethod
    def from_row(cls, row: dict) -> "ProductTrendingRecord":
        return cls(
            product_id=row["product_id"],
            brand=row.get("brand") or "Unknown",
            name=row.get("name") or row["product_id"],
            total_views=row.get("total_views") or 0,
            total_clicks=row.get("total_clicks") or 0,
            total_searches=row.get("total_searches") or 0,
            last_interaction=row.get("last_interaction"),
            trending_score=row.get("trending_score") or 0,
            admin_score=row.get("admin_score") or 0,
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
        )

    def to_dict(self) -> dict:
        return {
            "productId": self.product_id,
            "brand": self.brand,
            "name": self.name,
            "totalViews": self.total_views,
            "totalClicks": self.total_clicks,
            "totalSearches": self.total_searches,
            "lastInteraction": self.last_interaction,
            "trendingScore": self.trending_score,
            "adminScore": self.admin_score,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }


@dataclass
class RankedProduct:
    """順位付きのトレンド商品. total_score は常に record から導出する."""

    record: ProductTrendingRecord
    rank: int  # 1 始まり

    @property
    def product_id(self) -> str:
        return self.record.product_id

    @property
    def total_score(self) -> int:
        return self.record.trending_score + self.record.admin_score

    def to_dict(self) -> dict:
        data = self.record.to_dict()
        data["totalScore"] = self.total_score
        data["rank"] = self.rank
        return data


@dataclass
class RankedSnapshot:
    """ランキング読み出し結果."""

    trending: list[RankedProduct]
    total_products: int
    last_updated: datetime
    disabled: bool = False

    def to_dict(self) -> dict:
        body = {
            "trending": [p.to_dict() for p in self.trending],
            "totalProducts": self.total_products,
            "lastUpdated": self.last_updated.isoformat(),
        }
        if self.disabled:
            body["disabled"] = True
        return body


@dataclass
class ManualFireBadge:
    """管理者が指定した順位位置のファイヤーバッジ."""

    product_id: str
    position: int
    duration: int  # 分
    start_time: str
    end_time: str
    is_active: bool = True
    id: int | None = None
    created_at: str | None = None
    updated_at: str | None = None

    @classmethod
    def from_row(cls, row: dict) -> "ManualFireBadge":
        return cls(
            id=row.get("id"),
            product_id=row["product_id"],
            position=row["position"],
            duration=row["duration"],
            start_time=row["start_time"],
            end_time=row["end_time"],
            is_active=bool(row.get("is_active")),
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "productId": self.product_id,
            "position": self.position,
            "duration": self.duration,
            "startTime": self.start_time,
            "endTime": self.end_time,
            "isActive": self.is_active,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }


@dataclass
class CatalogItem:
    """スプレッドシートの 1 商品."""

    id: str  # "{brand}-{sku}" を小文字化し空白を "-" に置換
    brand: str
    name: str  # SKU
    grade: str = "Standard"
    min_qty: int = 1
    price: float = 0.0
    description: str = ""
    category: str | None = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "brand": self.brand,
            "name": self.name,
            "grade": self.grade,
            "minQty": self.min_qty,
            "price": self.price,
            "description": self.description,
            "category": self.category,
        }


@dataclass
class FeaturedProduct:
    product_id: str
    type: str = "featured"
    display_order: int = 0
    is_active: bool = True
    id: int | None = None

    @classmethod
    def from_row(cls, row: dict) -> "FeaturedProduct":
        return cls(
            id=row.get("id"),
            product_id=row["product_id"],
            type=row.get("type") or "featured",
            display_order=row.get("display_order") or 0,
            is_active=bool(row.get("is_active")),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "productId": self.product_id,
            "type": self.type,
            "isActive": self.is_active,
            "displayOrder": self.display_order,
        }


@dataclass
class Banner:
    """トップページのバナー."""

    title: str
    image_url: str
    description: str | None = None
    link_url: str | None = None
    link_text: str | None = None
    is_active: bool = True
    display_order: int = 1
    id: int | None = None

    def to_row(self) -> dict:
        return {
            "title": self.title,
            "description": self.description,
            "image_url": self.image_url,
            "link_url": self.link_url,
            "link_text": self.link_text,
            "is_active": self.is_active,
            "display_order": self.display_order,
        }

    @classmethod
    def from_row(cls, row: dict) -> "Banner":
        return cls(
            id=row.get("id"),
            title=row["title"],
            image_url=row["image_url"],
            description=row.get("description") or None,
            link_url=row.get("link_url") or None,
            link_text=row.get("link_text") or None,
            is_active=bool(row.get("is_active")),
            display_order=row.get("display_order") or 1,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "imageUrl": self.image_url,
            "linkUrl": self.link_url,
            "linkText": self.link_text,
            "isActive": self.is_active,
            "displayOrder": self.display_order,
        }


@dataclass
class AdminUser:
    """管理画面ユーザー. パスワードハッシュは保持しない."""

    id: str
    username: str
    role: str = "admin"  # "admin" or "user"
    created_at: str | None = None
    created_by: str | None = None

    @classmethod
    def from_row(cls, row: dict) -> "AdminUser":
        return cls(
            id=str(row["id"]),
            username=row["username"],
            role=row.get("role") or "admin",
            created_at=row.get("created_at"),
            created_by=row.get("created_by"),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "username": self.username,
            "role": self.role,
            "createdAt": self.created_at,
            "createdBy": self.created_by,
        }
