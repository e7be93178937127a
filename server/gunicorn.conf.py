import os

# gunicorn -c server/gunicorn.conf.py "storefront.api:create_app()"
port = os.getenv("PORT", "8000")
bind = f"0.0.0.0:{port}"

workers = int(os.getenv("WEB_CONCURRENCY", "2"))
threads = int(os.getenv("GUNICORN_THREADS", "1"))
timeout = int(os.getenv("GUNICORN_TIMEOUT", "30"))

loglevel = os.getenv("LOG_LEVEL", "info").lower()
accesslog = "-"


def on_starting(server):
    # アプリのロガーはマスタープロセスで設定し、ワーカーに引き継ぐ
    from storefront.main import setup_logging

    setup_logging()
