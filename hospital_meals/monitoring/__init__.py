"""Structured logging and Prometheus metrics."""

from hospital_meals.monitoring.logging import init_request_logging, setup_structured_logging

__all__ = ["init_request_logging", "setup_structured_logging"]
