"""Gunicorn configuration file.

Run with:
    gunicorn -c gunicorn.conf.py "partner_bff.flask_app:create_app()"

Secrets (AUTH_CLIENT_SECRET, CUBE_API_TOKEN, DATABASE_URL...) are read by
partner_bff.config.settings from /run/secrets before the environment, so
workers only need the mount to be present.
"""
import os
from pathlib import Path

bind = os.environ.get("GUNICORN_BIND", "0.0.0.0:8000")
workers = int(os.environ.get("GUNICORN_WORKERS", "2"))
threads = int(os.environ.get("GUNICORN_THREADS", "4"))
timeout = int(os.environ.get("GUNICORN_TIMEOUT", "30"))
accesslog = "-"
errorlog = "-"
loglevel = os.environ.get("LOG_LEVEL", "info").lower()


def post_fork(server, worker):
    """
    Called just after a worker has been forked.

    Memory storage is per process: every worker would hold its own data set.
    """
    backend = os.environ.get("STORAGE_BACKEND", "").lower()
    demo_mode = os.environ.get("DEMO_MODE", "false").lower() == "true"
    if (backend == "memory" or (demo_mode and not backend)) and workers > 1:
        worker.log.warning("STORAGE_BACKEND=memory with %s workers: data is not shared between workers", workers)

    secrets_dir = Path("/run/secrets")
    if secrets_dir.exists() and secrets_dir.is_dir():
        secret_files = list(secrets_dir.glob("*"))
        if secret_files:
            worker.log.info(f"Found {len(secret_files)} secrets in /run/secrets")
