"""
Validation and integrity layer.

``WriteOrchestrator`` guards every mutation; ``EntityQueryService`` serves
reads. Both are built once per application and reached through the
accessors below inside a request.
"""

from flask import current_app

from hospital_meals.business.orchestrator import Operation, WriteOrchestrator
from hospital_meals.business.policies import POLICIES, EntityType, get_policy
from hospital_meals.business.queries import EntityQueryService


def get_write_orchestrator() -> WriteOrchestrator:
    return current_app.extensions['hospital_meals']['orchestrator']


def get_query_service() -> EntityQueryService:
    return current_app.extensions['hospital_meals']['queries']


__all__ = [
    "EntityQueryService",
    "EntityType",
    "Operation",
    "POLICIES",
    "WriteOrchestrator",
    "get_policy",
    "get_query_service",
    "get_write_orchestrator",
]
