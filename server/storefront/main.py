"""ストアフロント API — エントリーポイント.

サブコマンド:
  serve    開発用サーバーを起動 (本番は gunicorn -c server/gunicorn.conf.py)
  rebuild  操作ログ全件からトレンド集計を作り直す (cron から定期実行)
  rescore  保存済みカウンタからトレンドスコアを再計算する
"""

from __future__ import annotations

import argparse
import logging
import sys
import time
from datetime import datetime

from storefront.config import LOG_DIR, LOG_LEVEL


def setup_logging() -> None:
    """ロギングの初期設定."""
    LOG_DIR.mkdir(parents=True, exist_ok=True)
    log_file = LOG_DIR / f"storefront_{datetime.now().strftime('%Y%m%d')}.log"
    logging.basicConfig(
        level=LOG_LEVEL,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(log_file, encoding="utf-8"),
        ],
    )


def cmd_serve(args: argparse.Namespace) -> None:
    from storefront.api import create_app

    create_app().run(host=args.host, port=args.port)


def cmd_rebuild(args: argparse.Namespace) -> None:
    from storefront.aggregator import rebuild_from_log

    logger = logging.getLogger(__name__)
    logger.info("=== トレンド集計 再構築 開始 ===")
    start_time = time.time()
    updated = rebuild_from_log()
    logger.info("=== トレンド集計 再構築 完了: %d 件, 所要時間: %.1f 秒 ===",
                updated, time.time() - start_time)


def cmd_rescore(args: argparse.Namespace) -> None:
    from storefront.aggregator import rescore_all

    logger = logging.getLogger(__name__)
    updated = rescore_all()
    logger.info("トレンドスコア再計算: %d 件", updated)


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Wholesale storefront API")
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve_parser = subparsers.add_parser("serve", help="Run the development server")
    serve_parser.add_argument("--host", default="127.0.0.1")
    serve_parser.add_argument("--port", type=int, default=8000)
    serve_parser.set_defaults(func=cmd_serve)

    rebuild_parser = subparsers.add_parser(
        "rebuild", help="Rebuild trending counters from the interaction log"
    )
    rebuild_parser.set_defaults(func=cmd_rebuild)

    rescore_parser = subparsers.add_parser(
        "rescore", help="Recompute trending scores from stored counters"
    )
    rescore_parser.set_defaults(func=cmd_rescore)

    return parser


def run(argv: list[str] | None = None) -> None:
    """メイン処理."""
    setup_logging()
    args = create_parser().parse_args(argv)
    args.func(args)


if __name__ == "__main__":
    run()
