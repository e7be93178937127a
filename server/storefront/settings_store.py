"""運用設定 (保持日数・バックアップ頻度・トレンド表示) の JSON ファイルストア."""

from __future__ import annotations

import contextlib
import json
import logging
from pathlib import Path

from storefront.config import OPS_CONFIG_PATH
from storefront.errors import ValidationError
from storefront.models import utc_now_iso

logger = logging.getLogger(__name__)

BACKUP_FREQUENCIES = ("daily", "weekly", "monthly", "off")

DEFAULTS = {
    "retentionDays": 30,
    "backupFrequency": "daily",
    "trendingEnabled": True,
    "lastUpdated": None,
}


class OperationalSettingsStore:
    """``get()`` / ``set()`` だけを持つ小さな設定ストア."""

    def __init__(self, path: Path | str = OPS_CONFIG_PATH) -> None:
        self.path = Path(path)

    def get(self) -> dict:
        """既定値にファイルの内容を重ねて返す. 壊れたファイルは無視する."""
        settings = dict(DEFAULTS)
        if self.path.exists():
            with contextlib.suppress(json.JSONDecodeError, OSError):
                stored = json.loads(self.path.read_text(encoding="utf-8"))
                if isinstance(stored, dict):
                    settings.update({k: v for k, v in stored.items() if k in DEFAULTS})
        return settings

    def set(self, changes: dict) -> dict:
        """変更を検証して保存し、保存後の設定を返す.

        Raises:
            ValidationError: 範囲外・未知の値
        """
        unknown = set(changes) - (set(DEFAULTS) - {"lastUpdated"})
        if unknown:
            raise ValidationError(f"Unknown settings: {', '.join(sorted(unknown))}")

        if "retentionDays" in changes:
            days = changes["retentionDays"]
            if isinstance(days, bool) or not isinstance(days, int) or not 1 <= days <= 365:
                raise ValidationError(
                    "Retention days must be between 1 and 365", field="retentionDays"
                )
        if "backupFrequency" in changes and changes["backupFrequency"] not in BACKUP_FREQUENCIES:
            raise ValidationError(
                f"Backup frequency must be one of: {', '.join(BACKUP_FREQUENCIES)}",
                field="backupFrequency",
            )
        if "trendingEnabled" in changes and not isinstance(changes["trendingEnabled"], bool):
            raise ValidationError("trendingEnabled must be a boolean", field="trendingEnabled")

        settings = self.get()
        settings.update(changes)
        settings["lastUpdated"] = utc_now_iso()

        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(settings, indent=2, ensure_ascii=False), encoding="utf-8")
        logger.info("運用設定を更新: %s", ", ".join(sorted(changes)))
        return settings


settings_store = OperationalSettingsStore()
