"""
structlog configuration and per-request correlation.

``setup_structured_logging`` wires structlog over the stdlib logging backend
so that library loggers (werkzeug, pymongo, gunicorn) and our own events share
one stream. ``init_request_logging`` binds a request id into structlog
contextvars for every request and logs request completion.
"""

import logging
import logging.config
import time
import uuid
from typing import Optional

import structlog
from flask import Flask, g, request

logger = structlog.get_logger(__name__)

REQUEST_ID_HEADER = 'X-Request-ID'


def setup_structured_logging(app: Optional[Flask] = None) -> structlog.stdlib.BoundLogger:
    """
    Configure structlog and the root stdlib logger.

    Reads ``LOG_LEVEL`` and ``LOG_FORMAT`` from the Flask config when an app is
    given; otherwise defaults to INFO and JSON output.
    """
    log_level = 'INFO'
    log_format = 'json'
    if app is not None:
        log_level = str(app.config.get('LOG_LEVEL', log_level)).upper()
        log_format = app.config.get('LOG_FORMAT', log_format)

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]
    if log_format == 'console':
        processors.append(structlog.dev.ConsoleRenderer(colors=False))
    else:
        processors.append(structlog.processors.JSONRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )

    logging.config.dictConfig({
        'version': 1,
        'disable_existing_loggers': False,
        'formatters': {
            'plain': {'format': '%(message)s'},
        },
        'handlers': {
            'console': {
                'class': 'logging.StreamHandler',
                'formatter': 'plain',
                'stream': 'ext://sys.stdout',
            },
        },
        'root': {
            'handlers': ['console'],
            'level': log_level,
        },
        'loggers': {
            'pymongo': {'level': 'WARNING'},
        },
    })

    logger.info("Structured logging initialized", log_level=log_level, log_format=log_format)
    return structlog.get_logger("hospital_meals")


def init_request_logging(app: Flask) -> None:
    """Bind a request id for each request and log its completion."""

    @app.before_request
    def bind_request_context():
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        g.request_id = request_id
        g.request_started_at = time.perf_counter()
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.path,
        )

    @app.after_request
    def log_request(response):
        started = getattr(g, 'request_started_at', None)
        duration_ms = (time.perf_counter() - started) * 1000 if started else 0.0
        logger.info(
            "Request completed",
            endpoint=request.endpoint,
            status_code=response.status_code,
            duration_ms=round(duration_ms, 2),
        )
        request_id = getattr(g, 'request_id', None)
        if request_id:
            response.headers[REQUEST_ID_HEADER] = request_id
        return response

    @app.teardown_request
    def clear_request_context(exc=None):
        structlog.contextvars.clear_contextvars()
