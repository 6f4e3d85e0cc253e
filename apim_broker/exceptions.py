"""
Exception hierarchy for the APIM service broker.

Every error carries an ErrorCode, an HTTP-style status code, the optional
underlying cause and free-form context. Errors log themselves when created,
and callers dispatch on ``error_code`` rather than on the concrete class.
"""

import threading
import traceback
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

_thread_local = threading.local()


class ErrorCode(str, Enum):
    """Standardized error codes."""

    # System errors (1xxx)
    INTERNAL_ERROR = "1000"
    DATABASE_ERROR = "1001"
    CONNECTION_ERROR = "1002"

    # Validation errors (2xxx)
    VALIDATION_FAILED = "2000"
    INVALID_FORMAT = "2001"
    MISSING_REQUIRED = "2002"
    TYPE_MISMATCH = "2003"

    # Resource errors (3xxx)
    NOT_FOUND = "3000"
    DUPLICATE = "3001"
    CONFLICT = "3002"
    LOOKUP_NO_MATCH = "3006"
    LOOKUP_MULTIPLE_MATCHES = "3007"

    # External service errors (5xxx)
    EXTERNAL_API_ERROR = "5002"
    CREDENTIAL_ERROR = "5005"


class BaseError(Exception):
    """Base exception with context, error codes, logging, and error chaining."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        status_code: int = 500,
        cause: Optional[Exception] = None,
        **context: Any,
    ):
        """
        Initialize base error with rich context.

        Args:
            message: Human-readable error message
            error_code: Standardized error code from ErrorCode enum
            status_code: HTTP status code the broker surface should answer with
            cause: Original exception that caused this error
            **context: Additional context information
        """
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc).isoformat()
        self.error_id = str(uuid.uuid4())
        self.context = context

        correlation_id = get_correlation_id()
        if correlation_id:
            self.context["correlation_id"] = correlation_id

        self.context["error_id"] = self.error_id

        if cause:
            self.context["cause"] = {
                "type": type(cause).__name__,
                "message": str(cause),
                "traceback": traceback.format_exception(type(cause), cause, cause.__traceback__),
            }

        self._log_error()
        super().__init__(message)

    def _log_error(self) -> None:
        """Log error with a level derived from the status code."""
        # Imported here to avoid a circular import through apim_broker.utils
        from .utils.logger import get_logger

        logger = get_logger()

        log_data = {
            "error_id": self.error_id,
            "error_code": self.error_code.value,
            "status_code": self.status_code,
            "error_message": self.message,
            "context": {k: v for k, v in self.context.items() if k not in ["cause", "traceback"]},
        }

        if self.status_code >= 500:
            logger.error(f"Error {self.error_code.name}: {self.message}", extra=log_data)
        elif self.status_code >= 400:
            logger.warning(f"Client error {self.error_code.name}: {self.message}", extra=log_data)
        else:
            logger.info(f"Error {self.error_code.name}: {self.message}", extra=log_data)

    def to_dict(self, include_cause: bool = False) -> Dict[str, Any]:
        """Convert to a JSON-serializable dict."""
        result: Dict[str, Any] = {
            "error": {
                "id": self.error_id,
                "code": self.error_code.value,
                "message": self.message,
                "timestamp": self.timestamp,
                "context": {
                    k: v
                    for k, v in self.context.items()
                    if k not in ["cause", "error_id", "correlation_id"]
                },
            }
        }

        if "correlation_id" in self.context:
            result["error"]["correlation_id"] = self.context["correlation_id"]

        if include_cause and "cause" in self.context:
            result["error"]["cause"] = {
                "type": self.context["cause"]["type"],
                "message": self.context["cause"]["message"],
            }

        return result

    def add_context(self, **kwargs: Any) -> "BaseError":
        """Add additional context to the error (fluent interface)."""
        self.context.update(kwargs)
        return self

    @property
    def error_chain(self) -> List[Exception]:
        """Get the full chain of errors."""
        chain: List[Exception] = [self]
        current = self.cause
        while current:
            chain.append(current)
            current = getattr(current, "cause", None)
        return chain


# Layer-specific base exceptions
class RepositoryError(BaseError):
    """Storage layer errors (persistence-failure)."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.DATABASE_ERROR,
        status_code: int = 500,
        cause: Optional[Exception] = None,
        **context,
    ):
        super().__init__(message, error_code, status_code, cause, **context)


class ServiceError(BaseError):
    """Service layer errors."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        operation: Optional[str] = None,
        cause: Optional[Exception] = None,
        status_code: int = 500,
        **context,
    ):
        if operation:
            context["operation"] = operation
        super().__init__(message, error_code, status_code, cause, **context)


class ValidationError(BaseError):
    """Validation errors."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        error_code: ErrorCode = ErrorCode.VALIDATION_FAILED,
        cause: Optional[Exception] = None,
        **context,
    ):
        if field:
            context["field"] = field
        super().__init__(message, error_code, 400, cause, **context)


class ExternalServiceError(BaseError):
    """Errors talking to the remote API-management platform."""

    def __init__(
        self,
        message: str,
        service_name: str,
        error_code: ErrorCode = ErrorCode.EXTERNAL_API_ERROR,
        cause: Optional[Exception] = None,
        **context,
    ):
        context["service_name"] = service_name
        super().__init__(message, error_code, 502, cause, **context)


# Remote invocation errors
class TransientNetworkError(ExternalServiceError):
    """No response was received (connection refused, timeout, TLS failure)."""

    def __init__(self, operation: str, url: str, cause: Optional[Exception] = None):
        super().__init__(
            f"Unable to initiate request: {operation}",
            service_name="apim",
            error_code=ErrorCode.CONNECTION_ERROR,
            cause=cause,
            operation=operation,
            url=url,
        )


def _error_code_for_status(remote_status: Optional[int]) -> ErrorCode:
    if remote_status == 409:
        return ErrorCode.CONFLICT
    if remote_status == 404:
        return ErrorCode.NOT_FOUND
    return ErrorCode.EXTERNAL_API_ERROR


class RemoteCallError(ExternalServiceError):
    """
    The remote platform answered, but not with the expected status.

    ``remote_status`` is the status code observed on the last attempt. The
    error code tells callers apart the cases they recover from differently:
    CONFLICT for 409, NOT_FOUND for 404 and EXTERNAL_API_ERROR otherwise.
    """

    def __init__(
        self,
        operation: str,
        url: str,
        remote_status: Optional[int],
        message: Optional[str] = None,
        cause: Optional[Exception] = None,
    ):
        self.remote_status = remote_status
        super().__init__(
            message
            or f"Unsuccessful API call: {operation} response code: {remote_status} URL: {url}",
            service_name="apim",
            error_code=_error_code_for_status(remote_status),
            cause=cause,
            operation=operation,
            url=url,
            remote_status=remote_status,
        )

    @property
    def is_conflict(self) -> bool:
        return self.error_code == ErrorCode.CONFLICT

    @property
    def is_not_found(self) -> bool:
        return self.error_code == ErrorCode.NOT_FOUND


# Lookup errors
class AmbiguousLookupError(ServiceError):
    """A search that must resolve to exactly one remote resource did not."""

    def __init__(
        self,
        message: str,
        resource_type: str,
        query: str,
        match_count: int,
        error_code: ErrorCode,
    ):
        self.resource_type = resource_type
        self.query = query
        self.match_count = match_count
        super().__init__(
            message,
            error_code=error_code,
            operation=f"search {resource_type}",
            resource_type=resource_type,
            query=query,
            match_count=match_count,
        )


class LookupNoMatchError(AmbiguousLookupError):
    """The search returned zero matches."""

    def __init__(self, resource_type: str, query: str):
        super().__init__(
            f"Couldn't find the {resource_type} {query}",
            resource_type=resource_type,
            query=query,
            match_count=0,
            error_code=ErrorCode.LOOKUP_NO_MATCH,
        )


class LookupMultipleMatchesError(AmbiguousLookupError):
    """The search returned more than one match."""

    def __init__(self, resource_type: str, query: str, match_count: int):
        super().__init__(
            f"Returned more than one {resource_type} for {query}",
            resource_type=resource_type,
            query=query,
            match_count=match_count,
            error_code=ErrorCode.LOOKUP_MULTIPLE_MATCHES,
        )


# Credential errors
class CredentialError(ServiceError):
    """Credential store errors."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        cause: Optional[Exception] = None,
        status_code: int = 500,
        **context,
    ):
        super().__init__(
            message,
            error_code=ErrorCode.CREDENTIAL_ERROR,
            operation=operation,
            cause=cause,
            status_code=status_code,
            **context,
        )


class CredentialInitializationError(CredentialError):
    """Client registration or the initial grant failed. Fatal at startup."""


class TokenRefreshError(CredentialError):
    """The refresh-grant exchange failed."""


class TokenNotAvailableError(CredentialError):
    """No credential has been obtained yet."""

    def __init__(self, message: str = "Credential store is not initialized", **context):
        super().__init__(message, operation="token", status_code=503, **context)


# Factory functions for common error patterns
def not_found(
    resource_type: str, cause: Optional[Exception] = None, **identifiers
) -> RepositoryError:
    """
    Factory for not-found-in-store errors.

    Args:
        resource_type: Type of record (e.g., 'ServiceInstance', 'Bind')
        cause: Original exception if any
        **identifiers: Record identifiers (e.g., instance_id='123')

    Returns:
        Configured RepositoryError instance with 404 status
    """
    id_parts = [f"{k}={v}" for k, v in identifiers.items()]
    message = f"{resource_type} not found"
    if id_parts:
        message += f": {', '.join(id_parts)}"

    return RepositoryError(
        message,
        error_code=ErrorCode.NOT_FOUND,
        status_code=404,
        cause=cause,
        resource_type=resource_type,
        **identifiers,
    )


def duplicate(
    resource_type: str, cause: Optional[Exception] = None, **identifiers
) -> RepositoryError:
    """Factory for duplicate record errors (409)."""
    id_parts = [f"{k}={v}" for k, v in identifiers.items()]
    message = f"Duplicate {resource_type}"
    if id_parts:
        message += f": {', '.join(id_parts)}"

    return RepositoryError(
        message,
        error_code=ErrorCode.DUPLICATE,
        status_code=409,
        cause=cause,
        resource_type=resource_type,
        **identifiers,
    )


# Correlation ID management
def set_correlation_id(correlation_id: str) -> None:
    """Set the correlation ID for the current thread."""
    _thread_local.correlation_id = correlation_id


def get_correlation_id() -> Optional[str]:
    """Get the current thread's correlation ID."""
    return getattr(_thread_local, "correlation_id", None)


def clear_correlation_id() -> None:
    """Clear the current thread's correlation ID."""
    if hasattr(_thread_local, "correlation_id"):
        delattr(_thread_local, "correlation_id")
