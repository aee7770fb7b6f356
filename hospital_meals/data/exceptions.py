"""
Store layer exceptions.

PyMongo errors never leave ``hospital_meals.data``: the store manager maps
them onto the hierarchy below, which the business layer in turn folds into
``UniquenessConflictError`` or ``StoreFailureError``.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Type

import structlog
from pymongo.errors import (
    AutoReconnect,
    ConnectionFailure,
    DuplicateKeyError,
    ExecutionTimeout,
    NetworkTimeout,
    OperationFailure,
    PyMongoError,
    ServerSelectionTimeoutError,
    WTimeoutError,
)

from hospital_meals.monitoring.metrics import DATABASE_ERRORS

logger = structlog.get_logger(__name__)


class DatabaseOperationType(Enum):
    """Store operations issued by the manager."""
    INSERT = "insert"
    FIND = "find"
    COUNT = "count"
    UPDATE = "update"
    DELETE = "delete"
    INDEX = "index"
    PING = "ping"


class DatabaseException(Exception):
    """
    Base exception for all store errors.

    Carries the database, collection and operation that failed together with
    the original PyMongo error for logging.
    """

    def __init__(
        self,
        message: str,
        operation: Optional[DatabaseOperationType] = None,
        database: Optional[str] = None,
        collection: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(message)
        self.message = message
        self.operation = operation
        self.database = database
        self.collection = collection
        self.original_error = original_error
        self.timestamp = datetime.now(timezone.utc)

        DATABASE_ERRORS.labels(
            error_type=self.__class__.__name__,
            operation=operation.value if operation else "unknown",
            collection=collection or "unknown",
        ).inc()

        logger.warning(
            "Database exception occurred",
            error_type=self.__class__.__name__,
            operation=operation.value if operation else None,
            database=database,
            collection=collection,
            original_error=str(original_error) if original_error else None,
        )


class ConnectionException(DatabaseException):
    """Server unreachable or connection dropped."""


class TimeoutException(DatabaseException):
    """A store round trip exceeded its time budget."""

    def __init__(self, message: str, timeout_duration: Optional[float] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.timeout_duration = timeout_duration


class DuplicateKeyException(DatabaseException):
    """A unique index rejected the write."""

    def __init__(self, message: str, key_pattern: Optional[Dict[str, Any]] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.key_pattern = key_pattern or {}

    @property
    def fields(self):
        return list(self.key_pattern)


class QueryException(DatabaseException):
    """The server rejected the command."""


def classify_pymongo_error(error: PyMongoError) -> Type[DatabaseException]:
    """
    Pick the store exception class for a PyMongo error.

    Order matters: ``DuplicateKeyError`` is an ``OperationFailure`` and the
    timeout errors are ``ConnectionFailure`` subclasses.
    """
    if isinstance(error, DuplicateKeyError):
        return DuplicateKeyException
    if isinstance(error, (ExecutionTimeout, NetworkTimeout, WTimeoutError)):
        return TimeoutException
    if getattr(error, 'timeout', False) and not isinstance(error, ServerSelectionTimeoutError):
        return TimeoutException
    if isinstance(error, (ConnectionFailure, AutoReconnect)):
        return ConnectionException
    if isinstance(error, OperationFailure):
        return QueryException
    return DatabaseException


def handle_database_error(
    error: PyMongoError,
    operation: DatabaseOperationType,
    database: str,
    collection: Optional[str] = None,
    timeout_duration: Optional[float] = None,
) -> DatabaseException:
    """Build the store exception matching ``error``; the caller raises it."""
    exception_class = classify_pymongo_error(error)
    kwargs: Dict[str, Any] = {
        'operation': operation,
        'database': database,
        'collection': collection,
        'original_error': error,
    }
    if exception_class is TimeoutException:
        kwargs['timeout_duration'] = timeout_duration
    elif exception_class is DuplicateKeyException:
        details = getattr(error, 'details', None) or {}
        kwargs['key_pattern'] = details.get('keyPattern') or details.get('keyValue')

    return exception_class(f"Database operation failed: {error}", **kwargs)
