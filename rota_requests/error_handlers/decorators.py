"""
Error handling decorators

Provides decorators for consistent error handling across endpoints.
"""
from functools import wraps
from flask import jsonify, current_app
from datetime import datetime
from .exceptions import AppException


def handle_errors(f):
    """
    Universal error handler decorator - use on all API endpoints

    Provides:
    - Consistent JSON error responses carrying the ``error`` tag
    - Automatic logging with error IDs
    - Exception type hierarchy support

    Usage:
        @api_bp.route('/endpoint')
        @handle_errors
        def my_endpoint():
            if not valid:
                raise ValidationException('Invalid input')
            return jsonify({'success': True})
    """
    @wraps(f)
    def decorated(*args, **kwargs):
        try:
            return f(*args, **kwargs)

        except AppException as e:
            current_app.logger.warning(
                f"{e.error_type} in {f.__name__}: {e.message}",
                extra={'details': e.details} if e.details else {}
            )
            return jsonify(e.to_dict()), e.status_code

        except Exception as e:
            error_id = datetime.utcnow().strftime('%Y%m%d_%H%M%S_%f')

            current_app.logger.error(
                f"Unexpected error [{error_id}] in {f.__name__}: {str(e)}",
                exc_info=True
            )

            return jsonify({
                'success': False,
                'error': 'InternalError',
                'message': 'An unexpected error occurred',
                'error_id': error_id,
                'status_code': 500
            }), 500

    return decorated


def with_db_transaction(f):
    """
    Decorator to wrap function in database transaction

    Automatically commits on success or rolls back on error.
    Apply below @handle_errors so the rollback happens before the error
    response is built.

    Usage:
        @handle_errors
        @with_db_transaction
        def set_cell():
            ...
    """
    @wraps(f)
    def decorated(*args, **kwargs):
        db = current_app.extensions['sqlalchemy']

        try:
            result = f(*args, **kwargs)
            db.session.commit()
            return result
        except Exception:
            db.session.rollback()
            raise

    return decorated
