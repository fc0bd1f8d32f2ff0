import multiprocessing
import os

# Gunicorn configuration for the helpdesk API (uvicorn workers)
#   gunicorn -c gunicorn_conf.py helpdesk.main:app

bind = os.getenv("BIND", "0.0.0.0:8000")

# (2 x num_cores) + 1 unless overridden
workers = int(os.getenv("WEB_CONCURRENCY", multiprocessing.cpu_count() * 2 + 1))
worker_class = "uvicorn.workers.UvicornWorker"

timeout = 120
keepalive = 5

# Logging
accesslog = "-"
errorlog = "-"
loglevel = os.getenv("LOG_LEVEL", "info").lower()

name = "helpdesk_api"
reload = False
