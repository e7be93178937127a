"""アプリケーション例外の定義.

HTTP ハンドラは ``status_code`` をそのままレスポンスに使う。
"""

from __future__ import annotations


class StorefrontError(Exception):
    """全アプリケーション例外の基底."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"success": False, "error": self.message}


class ValidationError(StorefrontError):
    """必須項目の欠落・不正な入力."""

    status_code = 400

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field

    def to_dict(self) -> dict:
        body = super().to_dict()
        if self.field:
            body["field"] = self.field
        return body


class AuthenticationError(StorefrontError):
    status_code = 401


class NotFoundError(StorefrontError):
    status_code = 404


class ConflictError(StorefrontError):
    """一意キーの重複 (ユーザー名・商品 ID・バッジ位置など)."""

    status_code = 409


class InternalError(StorefrontError):
    """ストレージ・ネットワーク障害.

    ``code`` / ``hint`` は Supabase (PostgREST) が返した値をそのまま保持する。
    """

    status_code = 500

    def __init__(
        self,
        message: str,
        code: str | None = None,
        hint: str | None = None,
        details: str | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.hint = hint
        self.details = details

    def to_dict(self) -> dict:
        body = super().to_dict()
        if self.details:
            body["details"] = self.details
        if self.code:
            body["code"] = self.code
        if self.hint:
            body["hint"] = self.hint
        return body
