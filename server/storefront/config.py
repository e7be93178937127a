"""設定モジュール — 環境変数・定数定義."""

import os
from pathlib import Path

from dotenv import load_dotenv

# .env はプロジェクトルートに配置
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
load_dotenv(_PROJECT_ROOT / ".env")


def _float_env(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


# --- Supabase ---
# クライアントは db モジュールで初回利用時に生成する
SUPABASE_URL: str = os.environ.get("SUPABASE_URL", "")
SUPABASE_SECRET_KEY: str = os.environ.get("SUPABASE_SECRET_KEY", "")

# --- カタログ (スプレッドシート CSV エクスポート) ---
SHEET_CSV_URL: str = os.environ.get("SHEET_CSV_URL", "")
REQUEST_TIMEOUT = 15  # 秒

# --- Flask ---
FLASK_SECRET_KEY: str = os.environ.get("FLASK_SECRET_KEY", "")

# --- トレンドスコア ---
# "simple": 重み付き合計 / "decayed": 最終操作からの経過時間で減衰
TRENDING_SCORE_MODE: str = os.environ.get("TRENDING_SCORE_MODE", "simple")
WEIGHT_PRODUCT_VIEW = _float_env("WEIGHT_PRODUCT_VIEW", 3.0)
WEIGHT_RESULT_CLICK = _float_env("WEIGHT_RESULT_CLICK", 5.0)
WEIGHT_SEARCH = _float_env("WEIGHT_SEARCH", 1.5)
DECAY_WINDOW_HOURS = _float_env("DECAY_WINDOW_HOURS", 168.0)  # 1 週間
DECAY_FLOOR = _float_env("DECAY_FLOOR", 0.1)

# --- ランキング ---
# "live": 毎回再計算 / "materialized": スナップショットをキャッシュ
RANKING_MODE: str = os.environ.get("RANKING_MODE", "materialized")
RANKING_CACHE_SECONDS = _float_env("RANKING_CACHE_SECONDS", 120.0)
DEFAULT_RANKING_LIMIT = 5

# --- 運用設定ファイル ---
DATA_DIR = Path(os.environ.get("DATA_DIR") or Path(__file__).resolve().parent.parent / "data")
OPS_CONFIG_PATH = DATA_DIR / "ops-config.json"

# --- ログ ---
LOG_DIR = Path(__file__).resolve().parent.parent / "logs"
LOG_LEVEL: str = os.environ.get("LOG_LEVEL", "INFO").upper()
