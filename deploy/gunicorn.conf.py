import multiprocessing
import os

# Serve with: gunicorn -c deploy/gunicorn.conf.py daycare.main:app
bind = os.getenv("DAYCARE_BIND", "127.0.0.1:8000")
workers = int(os.getenv("DAYCARE_WORKERS", (multiprocessing.cpu_count() * 2) + 1))
worker_class = "uvicorn.workers.UvicornWorker"
timeout = 60
graceful_timeout = 30
keepalive = 5
loglevel = "info"
accesslog = "-"
errorlog = "-"
