"""Supabase データベース操作モジュール.

全テーブルは public スキーマ。行の追加・更新はここに集約し、
PostgREST のエラーは InternalError / ConflictError に変換して送出する。
カウンタ加算とファイヤーバッジ位置の占有は Postgres 関数 (RPC) で原子的に行う
(定義は server/sql/schema.sql)。
"""

from __future__ import annotations

import logging
from functools import lru_cache

import httpx
from postgrest.exceptions import APIError
from supabase import Client, create_client

from storefront.config import SUPABASE_SECRET_KEY, SUPABASE_URL
from storefront.errors import ConflictError, InternalError

logger = logging.getLogger(__name__)

# PostgREST のページサイズ上限
PAGE_SIZE = 1000

# Postgres unique_violation
_UNIQUE_VIOLATION = "23505"


@lru_cache(maxsize=1)
def _client() -> Client:
    if not SUPABASE_URL or not SUPABASE_SECRET_KEY:
        raise InternalError(
            "Database is not configured",
            hint="Set SUPABASE_URL and SUPABASE_SECRET_KEY",
        )
    return create_client(SUPABASE_URL, SUPABASE_SECRET_KEY)


def _table(name: str):
    """テーブルのクエリビルダを返す."""
    return _client().table(name)


def _rpc(fn: str, params: dict):
    """Postgres 関数呼び出しのクエリビルダを返す."""
    return _client().rpc(fn, params)


def _execute(query, action: str):
    """クエリを実行し、ストレージ層の例外をアプリケーション例外に変換する."""
    try:
        return query.execute()
    except APIError as e:
        logger.error(
            "%s に失敗: message=%s, code=%s, hint=%s",
            action, e.message, e.code, e.hint,
        )
        if e.code == _UNIQUE_VIOLATION:
            raise ConflictError(f"Duplicate key while trying to {action}") from e
        raise InternalError(
            f"Failed to {action}",
            code=e.code,
            hint=e.hint,
            details=e.message,
        ) from e
    except httpx.HTTPError as e:
        logger.error("%s に失敗 (通信エラー): %s", action, e)
        raise InternalError(f"Failed to {action}", details=str(e)) from e


def _count(query, action: str) -> int:
    resp = _execute(query, action)
    return resp.count or 0


# --- user_interactions ---


def insert_interaction(row: dict) -> dict:
    """操作ログを 1 件追加し、保存された行を返す."""
    resp = _execute(_table("user_interactions").insert([row]), "track interaction")
    logger.info("user_interactions に 1 件挿入: type=%s", row.get("type"))
    return resp.data[0] if resp.data else row


def fetch_all_interactions() -> list[dict]:
    """操作ログ全件を id 順にページングして取得する."""
    rows: list[dict] = []
    start = 0
    while True:
        resp = _execute(
            _table("user_interactions")
            .select("*")
            .order("id")
            .range(start, start + PAGE_SIZE - 1),
            "fetch interactions",
        )
        page = resp.data or []
        rows.extend(page)
        if len(page) < PAGE_SIZE:
            break
        start += PAGE_SIZE
    logger.info("user_interactions を %d 件取得", len(rows))
    return rows


def count_interactions() -> int:
    return _count(
        _table("user_interactions").select("id", count="exact", head=True),
        "count interactions",
    )


def active_session_ids(since_iso: str) -> list[str]:
    """指定時刻以降に操作のあったセッション ID (重複あり)."""
    resp = _execute(
        _table("user_interactions")
        .select("session_id")
        .gte("timestamp", since_iso)
        .not_.is_("session_id", "null"),
        "fetch active sessions",
    )
    return [row["session_id"] for row in resp.data or []]


# --- trending_products ---


def increment_trending_counters(
    product_id: str,
    brand: str,
    name: str,
    views: int,
    clicks: int,
    searches: int,
    at: str,
    weights: dict,
) -> dict:
    """カウンタを原子的に加算し、更新後の行を返す.

    未登録の product_id は admin_score=0 で新規作成される。
    trending_score は加算後のカウンタと weights から DB 側で再計算する。

    Args:
        weights: {"product_view", "result_click", "search"} の重み
    """
    resp = _execute(
        _rpc(
            "increment_trending_counters",
            {
                "p_product_id": product_id,
                "p_brand": brand,
                "p_name": name,
                "p_views": views,
                "p_clicks": clicks,
                "p_searches": searches,
                "p_at": at,
                "p_weight_view": weights["product_view"],
                "p_weight_click": weights["result_click"],
                "p_weight_search": weights["search"],
            },
        ),
        "update product metrics",
    )
    data = resp.data
    if isinstance(data, list):
        data = data[0] if data else {}
    return data or {}


def list_trending_products() -> list[dict]:
    """trending_products 全件を product_id 順に取得する."""
    rows: list[dict] = []
    start = 0
    while True:
        resp = _execute(
            _table("trending_products")
            .select("*")
            .order("product_id")
            .range(start, start + PAGE_SIZE - 1),
            "fetch trending products",
        )
        page = resp.data or []
        rows.extend(page)
        if len(page) < PAGE_SIZE:
            break
        start += PAGE_SIZE
    return rows


def count_trending_products() -> int:
    return _count(
        _table("trending_products").select("id", count="exact", head=True),
        "count trending products",
    )


def insert_trending_product(row: dict) -> dict:
    """トレンド商品を手動追加する. 既存の product_id は ConflictError."""
    resp = _execute(_table("trending_products").insert(row), "add trending product")
    logger.info("trending_products に追加: product_id=%s", row["product_id"])
    return resp.data[0] if resp.data else row


def update_admin_score(product_id: str, score: int, updated_at: str) -> list[dict]:
    """admin_score のみ更新する. 更新された行を返す (該当なしは空リスト)."""
    resp = _execute(
        _table("trending_products")
        .update({"admin_score": score, "updated_at": updated_at})
        .eq("product_id", product_id),
        "update admin score",
    )
    return resp.data or []


def _scoring_params(scoring: dict, now: str) -> dict:
    weights = scoring["weights"]
    return {
        "p_weight_view": weights["product_view"],
        "p_weight_click": weights["result_click"],
        "p_weight_search": weights["search"],
        "p_mode": scoring["mode"],
        "p_decay_window_hours": scoring["decay_window_hours"],
        "p_decay_floor": scoring["decay_floor"],
        "p_now": now,
    }


def rebuild_trending_counters(scoring: dict, now: str) -> int:
    """操作ログ全件からカウンタとスコアを DB 側で作り直す.

    集計と書き込みは 1 トランザクションで行い、その間の increment_trending_counters は待たされる。
    admin_score と name は保持する。

    Args:
        scoring: {"weights", "mode", "decay_window_hours", "decay_floor"}
        now: 減衰の基準時刻 (ISO 8601)

    Returns:
        更新した商品数
    """
    resp = _execute(
        _rpc("rebuild_trending_counters", _scoring_params(scoring, now)),
        "rebuild trending products",
    )
    updated = resp.data or 0
    logger.info("trending_products を再構築: %d 件", updated)
    return updated


def rescore_trending_products(scoring: dict, now: str) -> int:
    """保存済みカウンタから trending_score のみ DB 側で再計算する."""
    resp = _execute(
        _rpc("rescore_trending_products", _scoring_params(scoring, now)),
        "rescore trending products",
    )
    updated = resp.data or 0
    logger.info("trending_score を再計算: %d 件", updated)
    return updated


# --- manual_fire_badges ---


def list_fire_badges() -> list[dict]:
    resp = _execute(
        _table("manual_fire_badges").select("*").order("position"),
        "fetch manual fire badges",
    )
    return resp.data or []


def count_active_fire_badges() -> int:
    return _count(
        _table("manual_fire_badges")
        .select("id", count="exact", head=True)
        .eq("is_active", True),
        "count fire badges",
    )


def occupy_fire_badge_position(
    product_id: str, position: int, duration: int, start_time: str, end_time: str
) -> dict:
    """位置の既存バッジを無効化し、新しいバッジを作成する (1 トランザクション)."""
    resp = _execute(
        _rpc(
            "occupy_fire_badge_position",
            {
                "p_product_id": product_id,
                "p_position": position,
                "p_duration": duration,
                "p_start_time": start_time,
                "p_end_time": end_time,
            },
        ),
        "create manual fire badge",
    )
    data = resp.data
    if isinstance(data, list):
        data = data[0] if data else {}
    logger.info("ファイヤーバッジ作成: product_id=%s, position=%s", product_id, position)
    return data or {}


def deactivate_fire_badge(product_id: str, updated_at: str) -> list[dict]:
    resp = _execute(
        _table("manual_fire_badges")
        .update({"is_active": False, "updated_at": updated_at})
        .eq("product_id", product_id)
        .eq("is_active", True),
        "remove manual fire badge",
    )
    return resp.data or []


# --- featured_products ---


def list_featured_products(active_only: bool = True) -> list[dict]:
    query = _table("featured_products").select("*")
    if active_only:
        query = query.eq("is_active", True)
    resp = _execute(query.order("display_order"), "load featured products")
    return resp.data or []


def insert_featured_product(row: dict) -> dict:
    resp = _execute(_table("featured_products").insert(row), "add featured product")
    return resp.data[0] if resp.data else row


def delete_featured_product(featured_id: int) -> list[dict]:
    resp = _execute(
        _table("featured_products").delete().eq("id", featured_id),
        "remove featured product",
    )
    return resp.data or []


# --- banners ---


def list_banners(active_only: bool = True) -> list[dict]:
    query = _table("banners").select("*")
    if active_only:
        query = query.eq("is_active", True)
    resp = _execute(query.order("display_order"), "load banners")
    return resp.data or []


def insert_banner(row: dict) -> dict:
    resp = _execute(_table("banners").insert(row), "create banner")
    logger.info("banners に追加: title=%s", row.get("title"))
    return resp.data[0] if resp.data else row


def update_banner(banner_id: int, changes: dict) -> list[dict]:
    """更新された行を返す (該当なしは空リスト)."""
    resp = _execute(
        _table("banners").update(changes).eq("id", banner_id),
        "update banner",
    )
    return resp.data or []


def delete_banner(banner_id: int) -> list[dict]:
    resp = _execute(_table("banners").delete().eq("id", banner_id), "delete banner")
    return resp.data or []


# --- users ---


def get_user_by_username(username: str) -> dict | None:
    """パスワードハッシュを含むユーザー行を返す."""
    resp = _execute(
        _table("users").select("*").eq("username", username).limit(1),
        "fetch user",
    )
    return resp.data[0] if resp.data else None


def list_users() -> list[dict]:
    resp = _execute(
        _table("users")
        .select("id, username, role, created_at, created_by")
        .order("created_at", desc=True),
        "get users",
    )
    return resp.data or []


def insert_user(row: dict) -> dict:
    resp = _execute(_table("users").insert(row), "create user")
    logger.info("users に追加: username=%s", row["username"])
    return resp.data[0] if resp.data else row


def delete_user(user_id: str) -> list[dict]:
    resp = _execute(_table("users").delete().eq("id", user_id), "delete user")
    return resp.data or []
