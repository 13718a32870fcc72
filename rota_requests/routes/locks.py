"""
API endpoints for managing request cell locks.

Locked cells cannot be changed by staff; administrators can still edit them
and are the only ones who can lock or unlock.
"""
from flask import Blueprint, jsonify, request, current_app

from rota_requests.error_handlers import handle_errors, with_db_transaction
from rota_requests.routes import get_json_body, get_request_store
from rota_requests.utils.validators import (
    validate_date_param,
    validate_int_param,
    validate_required_fields,
)


def init_lock_routes(db, models):
    """
    Initialize lock routes with database and models

    Args:
        db: SQLAlchemy database instance
        models: Dictionary of model classes
    """
    locks_bp = Blueprint('locks_api', __name__, url_prefix='/api/locks')

    @locks_bp.route('', methods=['GET'])
    @handle_errors
    def list_locks():
        """
        List locks in a date range

        Query params:
            start: First date (YYYY-MM-DD)
            end: Last date (YYYY-MM-DD)
        """
        start = validate_date_param(request.args.get('start'), 'start')
        end = validate_date_param(request.args.get('end'), 'end')
        locks = get_request_store(db, models).list_locks(start, end)
        return jsonify({'success': True, 'locks': locks})

    @locks_bp.route('', methods=['POST'])
    @handle_errors
    @with_db_transaction
    def lock_cell():
        """
        Lock one request cell

        Request body:
            admin_id: Administrator's user id
            pin: Administrator's PIN
            target_user_id: Cell owner
            date: Date to lock (YYYY-MM-DD)
            reason_en / reason_es: Optional reason shown to staff
        """
        data = validate_required_fields(get_json_body(), ['admin_id', 'pin', 'target_user_id', 'date'])
        lock = get_request_store(db, models).set_lock(
            validate_int_param(data['admin_id'], 'admin_id'),
            str(data['pin']),
            validate_int_param(data['target_user_id'], 'target_user_id'),
            validate_date_param(data['date']),
            data.get('reason_en'),
            data.get('reason_es'),
        )
        current_app.logger.info(f"Locked cell {lock['user_id']}_{lock['date']} by {lock['locked_by']}")
        return jsonify({'success': True, 'lock': lock})

    @locks_bp.route('/clear', methods=['POST'])
    @handle_errors
    @with_db_transaction
    def unlock_cell():
        """
        Unlock one request cell

        Request body:
            admin_id, pin, target_user_id, date
        """
        data = validate_required_fields(get_json_body(), ['admin_id', 'pin', 'target_user_id', 'date'])
        get_request_store(db, models).clear_lock(
            validate_int_param(data['admin_id'], 'admin_id'),
            str(data['pin']),
            validate_int_param(data['target_user_id'], 'target_user_id'),
            validate_date_param(data['date']),
        )
        return jsonify({'success': True})

    return locks_bp
