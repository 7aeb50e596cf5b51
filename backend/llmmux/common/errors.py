"""
Error Definitions

Defines the gateway's exception classes for unified error handling.
Every client-facing failure is an AppError carrying its own HTTP status.
"""

from typing import Any, Optional


class AppError(Exception):
    """
    Application Base Exception

    Base class for all custom exceptions, containing error message, type, and code.
    """

    def __init__(
        self,
        message: str,
        error_type: str = "app_error",
        code: str = "internal_error",
        details: Optional[dict[str, Any]] = None,
        status_code: int = 500,
        headers: Optional[dict[str, str]] = None,
    ):
        """
        Initialize exception

        Args:
            message: Error message
            error_type: Error type
            code: Error code
            details: Extra error details
            status_code: HTTP status code
            headers: Extra response headers
        """
        super().__init__(message)
        self.message = message
        self.error_type = error_type
        self.code = code
        self.details = details or {}
        self.status_code = status_code
        self.headers = headers or {}

    def to_dict(self, include_details: bool = True) -> dict[str, Any]:
        """
        Convert to dictionary format (for API response)

        Args:
            include_details: Whether to include the details mapping

        Returns:
            dict: Error information dictionary
        """
        result: dict[str, Any] = {
            "error": {
                "message": self.message,
                "type": self.error_type,
                "code": self.code,
            }
        }
        if include_details and self.details:
            result["error"]["details"] = self.details
        return result


class AuthenticationError(AppError):
    """
    Authentication Error

    Raised when the bearer credential is missing, malformed or invalid.
    """

    def __init__(
        self,
        message: str = "Authentication failed",
        code: str = "invalid_api_key",
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            error_type="authentication_error",
            code=code,
            details=details,
            status_code=401,
            headers={"WWW-Authenticate": "Bearer"},
        )


class AuthorizationError(AppError):
    """
    Authorization Error

    Raised when a valid credential lacks the model access or role a request needs.
    """

    def __init__(
        self,
        message: str = "Insufficient permissions",
        code: str = "permission_denied",
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            error_type="authorization_error",
            code=code,
            details=details,
            status_code=403,
        )


class NotFoundError(AppError):
    """
    Resource Not Found Error

    Raised when requested resource (e.g., API key, user) does not exist.
    """

    def __init__(
        self,
        message: str = "Resource not found",
        code: str = "not_found",
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            error_type="not_found_error",
            code=code,
            details=details,
            status_code=404,
        )


class ResolutionError(NotFoundError):
    """
    Model Resolution Error

    Raised when no static or discovered backend serves the requested model.
    """

    def __init__(self, model: str):
        super().__init__(
            message=f"Model '{model}' not found",
            code="model_not_found",
            details={"model": model},
        )
        self.model = model


class ConflictError(AppError):
    """
    Resource Conflict Error

    Raised when resource already exists (e.g., duplicate email).
    """

    def __init__(
        self,
        message: str = "Resource conflict",
        code: str = "conflict",
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            error_type="conflict_error",
            code=code,
            details=details,
            status_code=409,
        )


class RateLimitError(AppError):
    """
    Rate Limit Error

    Raised when an API key exceeds its per-minute or per-day request budget.
    """

    def __init__(self, limit: str, retry_after: int):
        super().__init__(
            message=f"Rate limit exceeded ({limit}). Please try again later.",
            error_type="rate_limit_error",
            code="rate_limit_exceeded",
            details={"limit": limit, "retry_after": retry_after},
            status_code=429,
            headers={"Retry-After": str(retry_after)},
        )


class UpstreamError(AppError):
    """
    Upstream Service Error

    Raised when the outbound call to a backend fails (timeout, refused, non-2xx, bad payload).
    Never retried.
    """

    def __init__(
        self,
        message: str = "Upstream service error",
        code: str = "upstream_error",
        details: Optional[dict[str, Any]] = None,
        status_code: int = 502,
    ):
        super().__init__(
            message=message,
            error_type="upstream_error",
            code=code,
            details=details,
            status_code=status_code,
        )
