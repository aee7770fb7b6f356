"""MongoDB access layer."""

from hospital_meals.data.exceptions import (
    ConnectionException,
    DatabaseException,
    DuplicateKeyException,
    QueryException,
    TimeoutException,
)
from hospital_meals.data.mongodb import IndexSpec, MongoDBManager, is_valid_object_id

__all__ = [
    "ConnectionException",
    "DatabaseException",
    "DuplicateKeyException",
    "IndexSpec",
    "MongoDBManager",
    "QueryException",
    "TimeoutException",
    "is_valid_object_id",
]
