"""管理画面ユーザーの認証と管理."""

from __future__ import annotations

import logging

from werkzeug.security import check_password_hash, generate_password_hash

from storefront import db
from storefront.errors import ConflictError, NotFoundError, ValidationError
from storefront.models import AdminUser

logger = logging.getLogger(__name__)

ROLES = ("admin", "user")


def verify_credentials(username: str, password: str) -> AdminUser | None:
    """ユーザー名とパスワードを照合する. 不一致・未登録は None."""
    if not username or not password:
        return None
    row = db.get_user_by_username(username)
    if row is None:
        return None

    try:
        valid = check_password_hash(row.get("password_hash") or "", password)
    except (ValueError, TypeError):
        valid = False
    if not valid:
        logger.warning("ログイン失敗: username=%s", username)
        return None
    return AdminUser.from_row(row)


def list_users() -> list[AdminUser]:
    return [AdminUser.from_row(row) for row in db.list_users()]


def create_user(
    username: str, password: str, role: str = "admin", created_by: str | None = None
) -> AdminUser:
    """ユーザーを追加する.

    Raises:
        ValidationError: 必須項目の欠落・未知のロール
        ConflictError: ユーザー名が既に存在する
    """
    if not username or not password:
        raise ValidationError("Username and password are required")
    if role not in ROLES:
        raise ValidationError(f"Role must be one of: {', '.join(ROLES)}", field="role")
    if db.get_user_by_username(username) is not None:
        raise ConflictError("Username already exists")

    row = db.insert_user({
        "username": username,
        "password_hash": generate_password_hash(password),
        "role": role,
        "created_by": created_by,
    })
    return AdminUser.from_row(row)


def delete_user(user_id: str) -> None:
    if not db.delete_user(user_id):
        raise NotFoundError("User not found")
    logger.info("ユーザー削除: id=%s", user_id)
