"""Flask JSON API.

ハンドラはリクエストの読み取りとレスポンス整形のみ行い、
例外 (StorefrontError) のステータスコード変換はエラーハンドラに任せる。
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from functools import wraps

from flask import Blueprint, Flask, jsonify, request, session
from werkzeug.exceptions import HTTPException

from storefront import (
    aggregator,
    auth,
    badges,
    banners,
    brands,
    catalog,
    featured,
    ranking,
    stats,
    tracking,
)
from storefront.config import DEFAULT_RANKING_LIMIT, FLASK_SECRET_KEY
from storefront.errors import AuthenticationError, StorefrontError, ValidationError
from storefront.models import RankedSnapshot
from storefront.settings_store import settings_store

logger = logging.getLogger(__name__)

bp = Blueprint("api", __name__)


def _json_body() -> dict:
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    return body


def _int_arg(name: str, default: int | None) -> int | None:
    raw = request.args.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an integer", field=name) from None


def _bool_arg(name: str) -> bool:
    return request.args.get(name, "").lower() in ("1", "true", "yes")


def admin_required(view):
    @wraps(view)
    def wrapped(*args, **kwargs):
        if not session.get("admin_user"):
            raise AuthenticationError("Admin login required")
        return view(*args, **kwargs)
    return wrapped


@bp.get("/health")
def health():
    return jsonify(status="ok")


# --- 操作記録 ---


@bp.post("/interactions")
def post_interaction():
    stored = tracking.record_interaction(_json_body())
    return jsonify(success=True, data=stored.to_dict())


# --- ランキング ---


@bp.get("/ranking")
def get_ranking():
    limit = _int_arg("limit", DEFAULT_RANKING_LIMIT)
    force = _bool_arg("forceRefresh") or _bool_arg("force")
    brand = request.args.get("brand") or None

    if not settings_store.get()["trendingEnabled"]:
        snapshot = RankedSnapshot(
            trending=[], total_products=0,
            last_updated=datetime.now(timezone.utc), disabled=True,
        )
    else:
        snapshot = ranking.get_ranked(limit=limit, force_refresh=force, brand=brand)
    return jsonify(snapshot.to_dict())


@bp.post("/ranking/admin-score")
@admin_required
def post_admin_score():
    body = _json_body()
    ranking.set_admin_score(body.get("productId"), body.get("score"))
    return jsonify(success=True)


@bp.post("/ranking/products")
@admin_required
def post_ranking_product():
    body = _json_body()
    # initialScore は管理者スコアとして扱う (再集計で消えないため)
    seed_admin = body.get("seedAdminScore", body.get("initialScore", 0))
    record = ranking.add_product(
        product_id=body.get("productId"),
        name=body.get("productName"),
        brand=body.get("brand"),
        seed_trending_score=body.get("seedTrendingScore", 0),
        seed_admin_score=seed_admin,
    )
    return jsonify(success=True, data=record.to_dict())


@bp.post("/ranking/rebuild")
@admin_required
def post_ranking_rebuild():
    return jsonify(success=True, updated=aggregator.rebuild_from_log())


@bp.post("/ranking/rescore")
@admin_required
def post_ranking_rescore():
    return jsonify(success=True, updated=aggregator.rescore_all())


@bp.get("/ranking/brands")
@admin_required
def get_brand_rankings():
    result = brands.brand_rankings(
        brand=request.args.get("brand") or None,
        detailed=_bool_arg("detailed"),
    )
    return jsonify(success=True, **result)


# --- カタログ・おすすめ ---


@bp.get("/catalog")
def get_catalog():
    items = catalog.filter_catalog(
        catalog.fetch_catalog(),
        brand=request.args.get("brand") or None,
        grade=request.args.get("grade") or None,
        search=request.args.get("search") or None,
    )
    resp = jsonify(items=[item.to_dict() for item in items])
    resp.headers["Cache-Control"] = "public, s-maxage=30, stale-while-revalidate"
    return resp


@bp.get("/featured")
def get_featured():
    return jsonify(success=True, featured=[f.to_dict() for f in featured.list_featured()])


@bp.post("/admin/featured")
@admin_required
def post_featured():
    body = _json_body()
    item = featured.add_featured(
        product_id=body.get("productId"),
        type=body.get("type") or "featured",
        display_order=body.get("displayOrder", 0),
    )
    return jsonify(success=True, featured=item.to_dict())


@bp.delete("/admin/featured/<int:featured_id>")
@admin_required
def delete_featured(featured_id: int):
    featured.remove_featured(featured_id)
    return jsonify(success=True)


# --- バナー ---


@bp.get("/banners")
def get_banners():
    return jsonify(success=True, banners=[b.to_dict() for b in banners.list_banners()])


@bp.get("/admin/banners")
@admin_required
def get_admin_banners():
    items = banners.list_banners(active_only=False)
    return jsonify(success=True, banners=[b.to_dict() for b in items])


@bp.post("/admin/banners")
@admin_required
def post_banner():
    banner = banners.create_banner(_json_body())
    return jsonify(success=True, banner=banner.to_dict())


@bp.put("/admin/banners/<int:banner_id>")
@admin_required
def put_banner(banner_id: int):
    banner = banners.update_banner(banner_id, _json_body())
    return jsonify(success=True, banner=banner.to_dict())


@bp.delete("/admin/banners/<int:banner_id>")
@admin_required
def delete_banner(banner_id: int):
    banners.delete_banner(banner_id)
    return jsonify(success=True)


# --- ファイヤーバッジ ---


@bp.get("/fire-badges/manual")
def get_fire_badges():
    return jsonify(success=True, badges=[b.to_dict() for b in badges.list_badges()])


@bp.post("/fire-badges/manual")
@admin_required
def post_fire_badge():
    body = _json_body()
    badge = badges.create_badge(body.get("productId"), body.get("position"), body.get("duration"))
    return jsonify(
        success=True,
        badge=badge.to_dict(),
        message=f"Manual fire badge created for position {badge.position}",
    )


@bp.delete("/fire-badges/manual/<product_id>")
@admin_required
def delete_fire_badge(product_id: str):
    badge = badges.remove_badge(product_id)
    return jsonify(
        success=True,
        badge=badge.to_dict(),
        message=f"Manual fire badge removed for product {product_id}",
    )


# --- 管理画面 ---


@bp.post("/admin/auth/login")
def login():
    body = _json_body()
    username, password = body.get("username"), body.get("password")
    if not username or not password:
        raise ValidationError("Username and password are required")

    user = auth.verify_credentials(username, password)
    if user is None:
        raise AuthenticationError("Invalid credentials")

    session.clear()
    session["admin_user"] = user.to_dict()
    session.permanent = bool(body.get("rememberMe"))
    logger.info("ログイン: username=%s", user.username)
    return jsonify(success=True, user=user.to_dict())


@bp.post("/admin/auth/logout")
def logout():
    session.clear()
    return jsonify(success=True)


@bp.get("/admin/users")
@admin_required
def get_users():
    return jsonify(success=True, users=[u.to_dict() for u in auth.list_users()])


@bp.post("/admin/users")
@admin_required
def post_user():
    body = _json_body()
    user = auth.create_user(
        body.get("username"),
        body.get("password"),
        role=body.get("role") or "admin",
        created_by=session["admin_user"]["username"],
    )
    return jsonify(success=True, user=user.to_dict())


@bp.delete("/admin/users/<user_id>")
@admin_required
def delete_user(user_id: str):
    if user_id == session["admin_user"]["id"]:
        raise ValidationError("You cannot delete your own account")
    auth.delete_user(user_id)
    return jsonify(success=True)


@bp.get("/admin/dashboard-stats")
@admin_required
def get_dashboard_stats():
    return jsonify(success=True, stats=stats.dashboard_stats())


@bp.get("/admin/settings")
@admin_required
def get_settings():
    return jsonify(success=True, settings=settings_store.get())


@bp.post("/admin/settings")
@admin_required
def post_settings():
    body = _json_body()
    changes = body.get("settings", body)
    if not isinstance(changes, dict) or not changes:
        raise ValidationError("Settings data is required")
    return jsonify(success=True, settings=settings_store.set(changes))


# --- エラーハンドラ ---


def _handle_storefront_error(exc: StorefrontError):
    if exc.status_code >= 500:
        logger.error("%s: %s", type(exc).__name__, exc.message)
    else:
        logger.warning("%s (%d): %s", type(exc).__name__, exc.status_code, exc.message)
    return jsonify(exc.to_dict()), exc.status_code


def _handle_http_error(exc: HTTPException):
    logger.warning("HTTP error %s: %s", exc.code, exc)
    return jsonify(success=False, error=exc.name), exc.code


def _handle_unexpected_error(exc: Exception):
    logger.exception("Unhandled error: %s", exc)
    return jsonify(success=False, error="Internal server error"), 500


def create_app(test_config: dict | None = None) -> Flask:
    """アプリケーションを生成する."""
    app = Flask(__name__)
    app.config.from_mapping(
        SECRET_KEY=FLASK_SECRET_KEY,
        SESSION_COOKIE_HTTPONLY=True,
        SESSION_COOKIE_SAMESITE="Lax",
        PERMANENT_SESSION_LIFETIME=timedelta(days=30),
    )
    if test_config:
        app.config.update(test_config)
    if not app.config["SECRET_KEY"]:
        raise RuntimeError("FLASK_SECRET_KEY is required.")

    app.register_blueprint(bp)
    app.register_error_handler(StorefrontError, _handle_storefront_error)
    app.register_error_handler(HTTPException, _handle_http_error)
    app.register_error_handler(Exception, _handle_unexpected_error)
    return app
