"""Helpers shared by the entity blueprints."""

import time
from functools import wraps
from typing import Any

import structlog
from flask import request

from hospital_meals.business.exceptions import DataValidationError
from hospital_meals.monitoring.metrics import ACTIVE_REQUESTS, REQUEST_COUNT, REQUEST_DURATION

logger = structlog.get_logger(__name__)


def monitor_endpoint_performance(func):
    """Record request count and latency for the decorated endpoint."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        start_time = time.perf_counter()
        endpoint = request.endpoint or 'unknown'
        method = request.method
        status_code = 500

        ACTIVE_REQUESTS.labels(endpoint=endpoint).inc()
        try:
            result = func(*args, **kwargs)
            if isinstance(result, tuple):
                status_code = result[1] if len(result) > 1 else 200
            else:
                status_code = getattr(result, 'status_code', 200)
            return result
        except Exception as exc:
            status_code = getattr(exc, 'http_status_code', 500)
            raise
        finally:
            ACTIVE_REQUESTS.labels(endpoint=endpoint).dec()
            REQUEST_COUNT.labels(method=method, endpoint=endpoint, status_code=status_code).inc()
            REQUEST_DURATION.labels(method=method, endpoint=endpoint).observe(
                time.perf_counter() - start_time
            )
    return wrapper


def json_body() -> Any:
    """
    Return the parsed JSON body, or ``None`` when the request has none.

    Raises:
        DataValidationError: The body is present but is not valid JSON
    """
    payload = request.get_json(silent=True)
    if payload is None and request.get_data(cache=True):
        raise DataValidationError(
            message="Request body must be valid JSON",
            error_code="INVALID_JSON",
        )
    return payload


def query_params() -> dict:
    return request.args.to_dict()
