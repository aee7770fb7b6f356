"""
Business exception hierarchy for the meal management write pipeline.

Every failure the validation and integrity layer can produce is one of the
classes below. Each carries a stable ``kind`` (the name clients switch on),
a machine readable ``error_code``, the HTTP status the API layer answers with
and, where one applies, the offending ``field``.

Classes:
    BaseBusinessException: Common base with structured logging and serialization
    DataValidationError: Field format, range, enum or required check failed
    MalformedIdentifierError: Supplied id is not a valid store identifier
    ReferenceNotFoundError: Foreign key does not resolve to a record
    ResourceNotFoundError: Target record of a detail/update/delete is absent
    UniquenessConflictError: Unique-scoped field collides with another record
    InvalidStatusTransitionError: Requested status breaks the ordering rules
    TerminalStateGuardError: Operation attempted on a record in a frozen state
    StoreFailureError: Persistence layer errored or timed out
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

import structlog
from flask import g, has_request_context, jsonify, request
from werkzeug.exceptions import HTTPException

logger = structlog.get_logger("business.exceptions")


class ErrorSeverity(Enum):
    """Severity levels used to pick the log level for an exception."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCategory(Enum):
    """Broad classification for dashboards and log filtering."""
    DATA_VALIDATION = "data_validation"
    REFERENTIAL_INTEGRITY = "referential_integrity"
    RESOURCE_ACCESS = "resource_access"
    CONCURRENCY = "concurrency"
    STATE_MACHINE = "state_machine"
    PERSISTENCE = "persistence"


class BaseBusinessException(Exception):
    """
    Base class for all business logic failures.

    Attributes:
        message (str): Human readable message shown to API clients
        error_code (str): Stable machine readable identifier
        http_status_code (int): HTTP status used by the Flask error handler
        field (Optional[str]): Offending field, when the error is about one
        details (Dict[str, Any]): Client visible structured detail
        context (Dict[str, Any]): Server side context, logged but never returned
        timestamp (datetime): Time the error was raised
        request_id (Optional[str]): Correlation id of the current request
    """

    kind = "BusinessError"

    def __init__(
        self,
        message: str,
        error_code: str,
        http_status_code: int = 400,
        field: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        category: ErrorCategory = ErrorCategory.DATA_VALIDATION,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ) -> None:
        super().__init__(message)

        self.message = message
        self.error_code = error_code
        self.http_status_code = http_status_code
        self.field = field
        self.details = details or {}
        self.severity = severity
        self.category = category
        self.context = context or {}
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc)
        self.request_id = self._get_request_id()

        self._log_exception()

    def _get_request_id(self) -> Optional[str]:
        if not has_request_context():
            return None
        return getattr(g, 'request_id', None) or request.headers.get('X-Request-ID')

    def _log_exception(self) -> None:
        log_data = {
            'exception_class': self.__class__.__name__,
            'kind': self.kind,
            'error_code': self.error_code,
            'field': self.field,
            'severity': self.severity.value,
            'category': self.category.value,
            'http_status_code': self.http_status_code,
            'context': self.context,
        }
        if self.cause is not None:
            log_data['cause'] = repr(self.cause)

        if self.severity in (ErrorSeverity.HIGH, ErrorSeverity.CRITICAL):
            logger.error("Business exception raised", **log_data)
        elif self.severity == ErrorSeverity.MEDIUM:
            logger.info("Business exception raised", **log_data)
        else:
            logger.debug("Business exception raised", **log_data)

    def to_dict(self) -> Dict[str, Any]:
        """Client facing error payload, without server side context."""
        error: Dict[str, Any] = {
            'kind': self.kind,
            'code': self.error_code,
        }
        if self.field:
            error['field'] = self.field
        if self.details:
            error['details'] = self.details
        if self.request_id:
            error['request_id'] = self.request_id
        return {
            'success': False,
            'message': self.message,
            'error': error,
        }

    def to_flask_response(self) -> tuple:
        return jsonify(self.to_dict()), self.http_status_code


class DataValidationError(BaseBusinessException):
    """
    Raised when a payload fails field validation.

    All violations for a payload are collected into ``field_errors``, keyed by
    dotted field path (``meals.0.mealItems.0.ingredients``), before raising.

    Example:
        raise DataValidationError(
            message="Diet plan validation failed",
            field_errors={'meals.0.mealItems': ['Must contain at least 1 item.']},
        )
    """

    kind = "ValidationError"

    def __init__(
        self,
        message: str,
        error_code: str = "VALIDATION_FAILED",
        field_errors: Optional[Dict[str, List[str]]] = None,
        **kwargs
    ) -> None:
        kwargs.setdefault('http_status_code', 400)
        kwargs.setdefault('category', ErrorCategory.DATA_VALIDATION)
        kwargs.setdefault('severity', ErrorSeverity.LOW)

        self.field_errors = field_errors or {}
        if self.field_errors:
            kwargs.setdefault('field', next(iter(self.field_errors)))
            details = kwargs.get('details') or {}
            details['field_errors'] = self.field_errors
            kwargs['details'] = details

        super().__init__(message, error_code, **kwargs)


class MalformedIdentifierError(BaseBusinessException):
    """Raised when an id is not a 24 character hexadecimal ObjectId string."""

    kind = "MalformedIdentifier"

    def __init__(self, field: str, value: Any, **kwargs) -> None:
        kwargs.setdefault('http_status_code', 400)
        kwargs.setdefault('category', ErrorCategory.DATA_VALIDATION)
        kwargs.setdefault('severity', ErrorSeverity.LOW)
        kwargs.setdefault('context', {'value': str(value)[:64]})

        super().__init__(
            message=f"Invalid {field} format",
            error_code="MALFORMED_IDENTIFIER",
            field=field,
            **kwargs
        )
        self.value = value


class ReferenceNotFoundError(BaseBusinessException):
    """Raised when a foreign key does not resolve to an existing record."""

    kind = "ReferenceNotFound"

    def __init__(self, field: str, target: str, reference_id: Any, **kwargs) -> None:
        kwargs.setdefault('http_status_code', 404)
        kwargs.setdefault('category', ErrorCategory.REFERENTIAL_INTEGRITY)
        kwargs.setdefault('details', {'target': target, 'id': str(reference_id)})

        super().__init__(
            message=f"{target} not found for {field}",
            error_code="REFERENCE_NOT_FOUND",
            field=field,
            **kwargs
        )
        self.target = target
        self.reference_id = reference_id


class ResourceNotFoundError(BaseBusinessException):
    """Raised when the target record of a detail, update or delete is absent."""

    kind = "NotFound"

    def __init__(self, resource_type: str, resource_id: Any, **kwargs) -> None:
        kwargs.setdefault('http_status_code', 404)
        kwargs.setdefault('category', ErrorCategory.RESOURCE_ACCESS)
        kwargs.setdefault('severity', ErrorSeverity.LOW)

        super().__init__(
            message=f"{resource_type} not found",
            error_code="RESOURCE_NOT_FOUND",
            **kwargs
        )
        self.resource_type = resource_type
        self.resource_id = resource_id


class UniquenessConflictError(BaseBusinessException):
    """
    Raised when a unique-scoped field collides with another record.

    Produced either by the application pre-check or by the store's unique
    index rejecting the write; ``context['source']`` tells which.
    """

    kind = "UniquenessConflict"

    def __init__(self, resource_type: str, field: str, **kwargs) -> None:
        kwargs.setdefault('http_status_code', 409)
        kwargs.setdefault('category', ErrorCategory.CONCURRENCY)

        super().__init__(
            message=f"A {resource_type} with this {field} already exists",
            error_code="UNIQUENESS_CONFLICT",
            field=field,
            **kwargs
        )
        self.resource_type = resource_type


class InvalidStatusTransitionError(BaseBusinessException):
    """Raised when a requested status violates the entity's status order."""

    kind = "InvalidStatusTransition"

    def __init__(
        self,
        message: str,
        current_status: Optional[str] = None,
        requested_status: Optional[str] = None,
        **kwargs
    ) -> None:
        kwargs.setdefault('http_status_code', 422)
        kwargs.setdefault('category', ErrorCategory.STATE_MACHINE)
        kwargs.setdefault('error_code', "INVALID_STATUS_TRANSITION")
        kwargs.setdefault('details', {
            'current_status': current_status,
            'requested_status': requested_status,
        })
        error_code = kwargs.pop('error_code')

        super().__init__(message, error_code, **kwargs)
        self.current_status = current_status
        self.requested_status = requested_status


class TerminalStateGuardError(BaseBusinessException):
    """Raised when an operation targets a record frozen in a terminal state."""

    kind = "TerminalStateGuard"

    def __init__(self, message: str, status: Optional[str] = None, **kwargs) -> None:
        kwargs.setdefault('http_status_code', 409)
        kwargs.setdefault('category', ErrorCategory.STATE_MACHINE)
        kwargs.setdefault('details', {'status': status})

        super().__init__(message, "TERMINAL_STATE_GUARD", **kwargs)
        self.status = status


class StoreFailureError(BaseBusinessException):
    """
    Raised when the persistence layer errors or times out.

    This is the only kind considered possibly transient. It is surfaced to
    the caller as is; nothing in the service retries it.
    """

    kind = "StoreFailure"

    def __init__(self, operation: str, timeout: bool = False, **kwargs) -> None:
        kwargs.setdefault('http_status_code', 504 if timeout else 503)
        kwargs.setdefault('category', ErrorCategory.PERSISTENCE)
        kwargs.setdefault('severity', ErrorSeverity.HIGH)
        context = kwargs.pop('context', None) or {}
        context.update({'operation': operation, 'timeout': timeout})

        message = ("The data store did not respond in time" if timeout
                   else "The data store is currently unavailable")
        super().__init__(message, "STORE_TIMEOUT" if timeout else "STORE_FAILURE",
                         context=context, **kwargs)
        self.operation = operation
        self.timeout = timeout


def create_flask_error_handlers(app) -> None:
    """
    Register Flask error handlers rendering every failure as the API envelope.

    Business exceptions keep their own status code and payload. Werkzeug HTTP
    errors (unknown route, wrong method, oversized body) reuse the envelope.
    Anything else becomes a generic 500 whose detail stays in the server log.
    """
    from hospital_meals.monitoring.metrics import BUSINESS_ERRORS

    @app.errorhandler(BaseBusinessException)
    def handle_business_exception(error: BaseBusinessException):
        BUSINESS_ERRORS.labels(kind=error.kind, error_code=error.error_code).inc()
        return error.to_flask_response()

    @app.errorhandler(HTTPException)
    def handle_http_exception(error: HTTPException):
        return jsonify({
            'success': False,
            'message': error.description or error.name,
            'error': {'kind': 'HTTPError', 'code': error.name.upper().replace(' ', '_')},
        }), error.code

    @app.errorhandler(Exception)
    def handle_unexpected_exception(error: Exception):
        logger.exception(
            "Unhandled exception",
            exception_class=error.__class__.__name__,
            path=request.path if has_request_context() else None,
        )
        return jsonify({
            'success': False,
            'message': "An unexpected error occurred. Please try again later.",
            'error': {'kind': 'InternalError', 'code': 'INTERNAL_ERROR'},
        }), 500
