"""Gunicorn configuration for the ASGI app (`gunicorn crm_app.main:app`)."""

import os

# Ensure ASGI worker is used even when the start command omits -k.
worker_class = "uvicorn.workers.UvicornWorker"

bind = f"0.0.0.0:{os.getenv('PORT', '8000')}"

# Guarded creates hold a per-process lock; row locks order creators across workers.
workers = int(os.getenv("WEB_CONCURRENCY", "2"))
timeout = int(os.getenv("GUNICORN_TIMEOUT", "60"))
graceful_timeout = int(os.getenv("GUNICORN_GRACEFUL_TIMEOUT", "30"))
accesslog = "-"
