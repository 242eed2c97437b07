"""Gunicorn configuration for the group service.

All values come from the environment so the same image runs everywhere:

    GUNICORN_BIND      (default 0.0.0.0:8000)
    GUNICORN_WORKERS   (default 2)
    GUNICORN_THREADS   (default 4)
    GUNICORN_TIMEOUT   (default 30, seconds)
    LOG_LEVEL          (default info)

Start with:
    gunicorn -c gunicorn.conf.py
"""
import os

wsgi_app = "groupsvc.flask_app:create_app()"

bind = os.environ.get("GUNICORN_BIND", "0.0.0.0:8000")
workers = int(os.environ.get("GUNICORN_WORKERS", "2"))
threads = int(os.environ.get("GUNICORN_THREADS", "4"))
# Keycloak calls are blocking; keep the worker timeout above the per-call timeout
timeout = int(os.environ.get("GUNICORN_TIMEOUT", "30"))
loglevel = os.environ.get("LOG_LEVEL", "info").lower()
accesslog = "-"
errorlog = "-"


def post_fork(server, worker):
    """
    Called just after a worker has been forked.

    Settings are loaded per worker by create_app(); a broken configuration
    should be visible in the worker log before the first request arrives.
    """
    demo_mode = os.environ.get("DEMO_MODE", "false").lower() == "true"
    if demo_mode:
        worker.log.warning("DEMO_MODE=true - static authorization grants in use")

    if not os.environ.get("KEYCLOAK_URL") and not demo_mode:
        worker.log.error("KEYCLOAK_URL is not set; the worker will fail to load the app")
