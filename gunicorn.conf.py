"""
Gunicorn configuration for the Curva S changelog API.

Env vars that override defaults:
  PORT     — TCP port to bind (default: 8000)
  WORKERS  — number of worker processes (default: 2)
"""
import os

bind = f"0.0.0.0:{os.environ.get('PORT', '8000')}"

# The changelog is recomputed per request; 2 workers fit a 512 MB container.
workers = int(os.environ.get("WORKERS", "2"))

# Each worker runs Uvicorn's ASGI event loop inside Gunicorn's process manager.
worker_class = "uvicorn.workers.UvicornWorker"

keepalive = 5

# Kill a worker that hasn't responded in 120 s.
timeout = 120

# stdout only; the platform collects it.
loglevel = os.environ.get("LOG_LEVEL", "info").lower()
accesslog = "-"
errorlog = "-"
access_log_format = '%(h)s "%(r)s" %(s)s %(b)sB %(D)sµs'

graceful_timeout = 30
