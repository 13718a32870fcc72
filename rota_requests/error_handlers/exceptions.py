"""
Custom exception hierarchy for type-safe error handling

Maps every rejection the request store can produce to an HTTP status and a
stable ``error_type`` tag. The tag travels to the client in the JSON body so
the editing engine can classify a rejected write without reading the message.

Exception Hierarchy:
    AppException (base)
    ├── ValidationException (400)
    │   ├── QuotaExceededException (409)
    │   └── PrioritySlotExhaustedException (409)
    ├── AuthenticationException (401)
    ├── AuthorizationException (403)
    │   ├── CellLockedException (403)
    │   └── WeekClosedException (403)
    ├── ResourceNotFoundException (404)
    └── ConfigurationException (500)
"""
from typing import Dict, Any, Optional


class AppException(Exception):
    """
    Base exception for all application errors

    Attributes:
        status_code: HTTP status code for the error
        error_type: String identifier for the error type
        message: Human-readable error message
        details: Additional context about the error
    """
    status_code = 500
    error_type = 'ApplicationError'

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        if status_code:
            self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert exception to JSON-serializable dictionary

        Returns:
            Dictionary suitable for JSON response
        """
        result = {
            'success': False,
            'error': self.error_type,
            'message': self.message,
            'status_code': self.status_code
        }

        if self.details:
            result.update(self.details)

        return result

    def __str__(self) -> str:
        return f"{self.error_type}: {self.message}"

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}('{self.message}', status_code={self.status_code})>"


class ValidationException(AppException):
    """
    Validation errors (HTTP 400)

    Raised when request data fails validation checks.

    Example:
        >>> if not data.get('date'):
        ...     raise ValidationException('Date is required')
    """
    status_code = 400
    error_type = 'ValidationError'


class QuotaExceededException(ValidationException):
    """
    Weekly request quota reached (HTTP 409)

    Raised when a user already holds the maximum number of requests in the
    week and tries to add one on a new day.
    """
    status_code = 409
    error_type = 'QuotaExceeded'


class PrioritySlotExhaustedException(ValidationException):
    """
    Both strong preference ranks are in use (HTTP 409)

    Raised when a rank is requested that another day of the same week
    already holds.
    """
    status_code = 409
    error_type = 'PrioritySlotExhausted'


class AuthenticationException(AppException):
    """
    Authentication errors (HTTP 401)

    Raised when the PIN is missing or does not match.

    Example:
        >>> if not user.check_pin(pin):
        ...     raise AuthenticationException('Invalid PIN')
    """
    status_code = 401
    error_type = 'AuthenticationError'


class AuthorizationException(AppException):
    """
    Authorization errors (HTTP 403)

    Raised when the actor is authenticated but may not touch the target.

    Example:
        >>> if not actor.is_admin:
        ...     raise AuthorizationException('Admin access required')
    """
    status_code = 403
    error_type = 'AuthorizationError'


class CellLockedException(AuthorizationException):
    """
    Request cell is locked by an administrator (HTTP 403)
    """
    error_type = 'CellLocked'


class WeekClosedException(AuthorizationException):
    """
    Week is not open for requests (HTTP 403)
    """
    error_type = 'WeekClosed'


class ResourceNotFoundException(AppException):
    """
    Resource not found (HTTP 404)

    Example:
        >>> user = db.session.get(User, user_id)
        >>> if not user:
        ...     raise ResourceNotFoundException(f'User {user_id} not found')
    """
    status_code = 404
    error_type = 'NotFound'


class ConfigurationException(AppException):
    """
    Configuration errors (HTTP 500)

    Raised when application is misconfigured.
    """
    status_code = 500
    error_type = 'ConfigurationError'
