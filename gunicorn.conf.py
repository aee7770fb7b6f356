"""
Gunicorn configuration for the hospital meal management API.

Run with:
    gunicorn --config gunicorn.conf.py "app:application"
"""

import multiprocessing
import os

# =============================================================================
# SERVER SOCKET
# =============================================================================

bind = os.getenv("GUNICORN_BIND", "0.0.0.0:8000")
backlog = 2048

# =============================================================================
# WORKERS
# =============================================================================

workers = int(os.getenv("GUNICORN_WORKERS", max(2, min(8, (2 * multiprocessing.cpu_count()) + 1))))
worker_class = "sync"
max_requests = 1000
max_requests_jitter = 100

# Above MONGODB_OPERATION_TIMEOUT so the store timeout always fires first
timeout = int(os.getenv("GUNICORN_TIMEOUT", "30"))
keepalive = 5
graceful_timeout = 30

# MongoClient is not fork-safe; each worker builds its own application
preload_app = False

# =============================================================================
# LOGGING
# =============================================================================

accesslog = "-"
errorlog = "-"
loglevel = os.getenv("GUNICORN_LOG_LEVEL", "info")
capture_output = True
access_log_format = '%(h)s "%(r)s" %(s)s %(b)s %(D)s "%({x-request-id}i)s"'

proc_name = "hospital-meals-api"

limit_request_line = 8192
limit_request_fields = 100
limit_request_field_size = 8192


def on_starting(server):
    server.log.info("Gunicorn master starting with %d workers", workers)


def post_fork(server, worker):
    worker.log.info("Worker %s ready to handle requests", worker.pid)


def worker_int(worker):
    worker.log.info("Worker %s shutting down", worker.pid)


def worker_abort(worker):
    worker.log.error("Worker %s aborted", worker.pid)


def worker_exit(server, worker):
    from hospital_meals.app import cleanup_application

    application = getattr(worker, "wsgi", None)
    if application is not None:
        cleanup_application(application)
    worker.log.info("Worker %s exited, MongoDB client closed", worker.pid)
