"""
Hospital meal management API.

Flask service tracking patients, diet plans, pantry staff, delivery persons,
meal preparations and meal deliveries over MongoDB. All writes pass through
the write orchestrator in ``hospital_meals.business.orchestrator``, which
enforces field validation, referential integrity, uniqueness and status
ordering before touching the store.
"""

__version__ = "1.0.0"

from hospital_meals.app import create_app

__all__ = ["create_app", "__version__"]
