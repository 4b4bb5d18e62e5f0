"""
AI Analysis Custom Exceptions
============================

Exception hierarchy for the multi-provider analysis layer with error codes,
context information and user-friendly messages.

Only ``AllServicesFailedError`` ever leaves ``analyze_content``; provider
level failures are recovered by the fallback loop.
"""

from typing import Optional, Dict, Any, Mapping
from enum import Enum


class ErrorCode(str, Enum):
    """Error codes for categorizing exceptions."""

    # Configuration errors (C001-C099)
    CONFIG_INVALID = "C001"
    CONFIG_MISSING = "C002"
    CONFIG_PARSE_ERROR = "C003"

    # Validation errors (V001-V099)
    VALIDATION_REQUIRED_FIELD = "V001"
    VALIDATION_INVALID_FORMAT = "V002"
    VALIDATION_OUT_OF_RANGE = "V003"
    VALIDATION_UNKNOWN_SERVICE = "V004"

    # Service registry errors (S001-S099)
    SERVICE_NOT_FOUND = "S001"
    SERVICE_UNSUPPORTED = "S002"
    ALL_SERVICES_FAILED = "S003"

    # Provider errors (A001-A099)
    AI_API_ERROR = "A001"
    AI_QUOTA_EXCEEDED = "A002"
    AI_INVALID_RESPONSE = "A003"
    AI_TIMEOUT = "A004"
    AI_AUTHENTICATION = "A005"
    AI_RATE_LIMIT = "A006"
    AI_PROCESSING_ERROR = "A007"
    AI_PROVIDER_UNAVAILABLE = "A008"
    AI_CONNECTION_ERROR = "A009"
    AI_CONTENT_REJECTED = "A010"
    AI_CIRCUIT_OPEN = "A011"


class AIAnalysisError(Exception):
    """Base exception for all analysis layer errors."""

    status_code: int = 500

    def __init__(
        self,
        message: str,
        error_code: Optional[ErrorCode] = None,
        context: Optional[Dict[str, Any]] = None,
        user_message: Optional[str] = None,
        recoverable: bool = False,
    ):
        """Initialize analysis error.

        Args:
            message: Technical error message for logging
            error_code: Categorized error code
            context: Additional context information
            user_message: User-friendly error message
            recoverable: Whether the error is recoverable
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.context = context or {}
        self.user_message = user_message or message
        self.recoverable = recoverable

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code.value if self.error_code else None,
            "error_message": self.message,
            "user_message": self.user_message,
            "context": self.context,
            "recoverable": self.recoverable,
        }

    def __str__(self) -> str:
        if self.error_code:
            return f"[{self.error_code.value}] {self.message}"
        return self.message


class ConfigurationError(AIAnalysisError):
    """Configuration-related errors."""

    def __init__(self, message: str, config_key: Optional[str] = None, **kwargs):
        context = kwargs.pop("context", {})
        if config_key:
            context["config_key"] = config_key

        super().__init__(
            message=message,
            error_code=kwargs.pop("error_code", ErrorCode.CONFIG_INVALID),
            context=context,
            user_message=kwargs.pop("user_message", f"Configuration error: {message}"),
            **kwargs,
        )


class ValidationError(AIAnalysisError):
    """Malformed caller input. Surfaced directly, never retried."""

    status_code = 400

    def __init__(self, message: str, field_name: Optional[str] = None, **kwargs):
        """Initialize validation error.

        Args:
            message: Error message
            field_name: Field name that failed validation
            **kwargs: Additional arguments for AIAnalysisError
        """
        context = kwargs.pop("context", {})
        if field_name:
            context["field_name"] = field_name

        super().__init__(
            message=message,
            error_code=kwargs.pop("error_code", ErrorCode.VALIDATION_INVALID_FORMAT),
            context=context,
            user_message=kwargs.pop("user_message", message),
            recoverable=kwargs.pop("recoverable", False),
            **kwargs,
        )


class UnsupportedServiceTypeError(AIAnalysisError):
    """No client implementation is registered for a configured service."""

    def __init__(self, service_id: str, **kwargs):
        context = kwargs.pop("context", {})
        context["service_id"] = service_id
        self.service_id = service_id

        super().__init__(
            message=kwargs.pop("message", f"Unsupported AI service type: {service_id}"),
            error_code=ErrorCode.SERVICE_UNSUPPORTED,
            context=context,
            user_message=kwargs.pop("user_message", f"AI service '{service_id}' is not supported"),
            **kwargs,
        )


class ServiceNotFoundError(AIAnalysisError):
    """Requested service is not currently in the registry."""

    def __init__(self, service_id: str, **kwargs):
        context = kwargs.pop("context", {})
        context["service_id"] = service_id
        self.service_id = service_id

        super().__init__(
            message=f"Service not found: {service_id}",
            error_code=ErrorCode.SERVICE_NOT_FOUND,
            context=context,
            user_message=kwargs.pop("user_message", f"AI service '{service_id}' is not enabled"),
            **kwargs,
        )


class ProviderError(AIAnalysisError):
    """A single provider call failed (network, status, timeout, bad reply)."""

    def __init__(
        self,
        message: str,
        service_id: Optional[str] = None,
        rate_limited: bool = False,
        retryable: bool = False,
        **kwargs,
    ):
        """Initialize provider error.

        Args:
            message: Error message
            service_id: Service that produced the failure
            rate_limited: Whether the provider reported a rate limit
            retryable: Whether repeating the call may succeed
            **kwargs: Additional arguments for AIAnalysisError
        """
        context = kwargs.pop("context", {})
        if service_id:
            context["service_id"] = service_id
        self.service_id = service_id
        self.rate_limited = rate_limited
        self.retryable = retryable

        super().__init__(
            message=message,
            error_code=kwargs.pop("error_code", ErrorCode.AI_API_ERROR),
            context=context,
            user_message=kwargs.pop("user_message", "AI processing temporarily unavailable"),
            recoverable=kwargs.pop("recoverable", True),
            **kwargs,
        )


class CircuitOpenError(ProviderError):
    """Call rejected without contacting the provider because its breaker is open."""

    def __init__(self, service_id: str, retry_in: float = 0.0):
        super().__init__(
            f"Circuit breaker for {service_id} is open, retry in {retry_in:.1f}s",
            service_id=service_id,
            retryable=True,
            error_code=ErrorCode.AI_CIRCUIT_OPEN,
        )
        self.retry_in = retry_in


class AllServicesFailedError(AIAnalysisError):
    """Every candidate in the fallback chain failed."""

    def __init__(self, errors: Mapping[str, Exception], **kwargs):
        self.errors: Dict[str, Exception] = dict(errors)

        if self.errors:
            details = ", ".join(f"{service}: {error}" for service, error in self.errors.items())
        else:
            details = "no enabled services available"

        super().__init__(
            message=f"All AI services failed. Errors: {details}",
            error_code=ErrorCode.ALL_SERVICES_FAILED,
            context={"failed_services": list(self.errors)},
            user_message=kwargs.pop("user_message", "All AI services are currently unavailable"),
            recoverable=True,
            **kwargs,
        )


# Exception handling utilities


def handle_exception(
    exception: Exception,
    logger,
    operation: str,
    context: Optional[Dict[str, Any]] = None,
) -> AIAnalysisError:
    """Convert generic exceptions to analysis exceptions with proper logging.

    Args:
        exception: Original exception
        logger: Logger instance for error logging
        operation: Operation that was being performed
        context: Additional context information

    Returns:
        Analysis exception with proper categorization
    """
    context = context or {}
    context["operation"] = operation
    context["original_exception_type"] = type(exception).__name__

    if isinstance(exception, AIAnalysisError):
        logger.error(f"Operation '{operation}' failed", extra=exception.to_dict())
        return exception

    elif isinstance(exception, TimeoutError):
        error = ProviderError(
            f"Timeout during {operation}: {exception}",
            error_code=ErrorCode.AI_TIMEOUT,
            context=context,
            retryable=True,
        )

    elif isinstance(exception, ConnectionError):
        error = ProviderError(
            f"Network error during {operation}: {exception}",
            error_code=ErrorCode.AI_CONNECTION_ERROR,
            context=context,
            retryable=True,
        )

    else:
        error = AIAnalysisError(
            message=f"Unexpected error during {operation}: {exception}",
            context=context,
            user_message="An unexpected error occurred",
            recoverable=True,
        )

    logger.error(f"Operation '{operation}' failed", extra=error.to_dict())
    return error


def is_retryable_error(exception: AIAnalysisError) -> bool:
    """Check if an error is worth retrying.

    Args:
        exception: Analysis exception to check

    Returns:
        True if the error is potentially retryable
    """
    if not exception.recoverable:
        return False

    retryable_codes = {
        ErrorCode.AI_TIMEOUT,
        ErrorCode.AI_RATE_LIMIT,
        ErrorCode.AI_CONNECTION_ERROR,
        ErrorCode.AI_CIRCUIT_OPEN,
        ErrorCode.ALL_SERVICES_FAILED,
    }

    return exception.error_code in retryable_codes


def get_user_friendly_message(exception: Exception) -> str:
    """Get user-friendly error message for any exception."""
    if isinstance(exception, AIAnalysisError):
        return exception.user_message

    return "An unexpected error occurred. Please try again later."
