"""
Blueprint registration.

Entity routes live under ``/api/v1/<resource>``; health and metrics
endpoints are mounted at the root.
"""

import structlog
from flask import Flask

from hospital_meals.blueprints.dashboard import dashboard_bp
from hospital_meals.blueprints.delivery_persons import delivery_persons_bp
from hospital_meals.blueprints.diet_plans import diet_plans_bp
from hospital_meals.blueprints.health import health_bp
from hospital_meals.blueprints.meal_deliveries import meal_deliveries_bp
from hospital_meals.blueprints.meal_preparations import meal_preparations_bp
from hospital_meals.blueprints.pantry_staff import pantry_staff_bp
from hospital_meals.blueprints.patients import patients_bp

logger = structlog.get_logger(__name__)

ALL_BLUEPRINTS = (
    patients_bp,
    diet_plans_bp,
    pantry_staff_bp,
    delivery_persons_bp,
    meal_preparations_bp,
    meal_deliveries_bp,
    dashboard_bp,
    health_bp,
)


def register_all_blueprints(app: Flask) -> None:
    for blueprint in ALL_BLUEPRINTS:
        app.register_blueprint(blueprint)

    logger.info(
        "Blueprints registered",
        blueprints=[blueprint.name for blueprint in ALL_BLUEPRINTS],
        routes=len(list(app.url_map.iter_rules())),
    )


__all__ = ['ALL_BLUEPRINTS', 'register_all_blueprints']
