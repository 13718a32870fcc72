"""
Unified Error Handling System

Provides centralized, consistent error handling across the application.

Usage:
    from rota_requests.error_handlers import handle_errors
    from rota_requests.error_handlers.exceptions import ValidationException

    @api_bp.route('/endpoint')
    @handle_errors
    def my_endpoint():
        if not valid:
            raise ValidationException('Invalid data')
        return jsonify({'success': True})
"""
from .exceptions import (
    AppException,
    ValidationException,
    QuotaExceededException,
    PrioritySlotExhaustedException,
    AuthenticationException,
    AuthorizationException,
    CellLockedException,
    WeekClosedException,
    ResourceNotFoundException,
    ConfigurationException
)
from .decorators import handle_errors, with_db_transaction


__all__ = [
    # Exceptions
    'AppException',
    'ValidationException',
    'QuotaExceededException',
    'PrioritySlotExhaustedException',
    'AuthenticationException',
    'AuthorizationException',
    'CellLockedException',
    'WeekClosedException',
    'ResourceNotFoundException',
    'ConfigurationException',
    # Decorators
    'handle_errors',
    'with_db_transaction',
    # Setup
    'setup_logging',
    'register_error_handlers',
]


def setup_logging(app):
    """Configure application logging"""
    from rota_requests.error_handlers import logging as eh_logging
    return eh_logging.setup_logging(app)


def register_error_handlers(app):
    """Register global error handlers for the Flask app"""
    from rota_requests.error_handlers import logging as eh_logging
    eh_logging.register_error_handlers(app)
