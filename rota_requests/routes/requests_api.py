"""
Requests API Blueprint
Reading and writing request cells
"""
from flask import Blueprint, jsonify, request

from rota_requests.error_handlers import handle_errors, with_db_transaction
from rota_requests.routes import get_json_body, get_request_store
from rota_requests.utils.validators import (
    validate_date_param,
    validate_int_param,
    validate_required_fields,
)


def _optional_target(data):
    target = data.get('target_user_id')
    return validate_int_param(target, 'target_user_id') if target is not None else None


def init_request_routes(db, models):
    """
    Initialize request cell routes with database and models

    Args:
        db: SQLAlchemy database instance
        models: Dictionary of model classes
    """
    requests_bp = Blueprint('requests_api', __name__, url_prefix='/api/requests')

    @requests_bp.route('', methods=['GET'])
    @handle_errors
    def list_requests():
        """
        Requests in a date range

        Query params:
            start: First date (YYYY-MM-DD)
            end: Last date (YYYY-MM-DD)
            user_id: Optional, one user's requests only
        """
        start = validate_date_param(request.args.get('start'), 'start')
        end = validate_date_param(request.args.get('end'), 'end')
        user_id = request.args.get('user_id')
        rows = get_request_store(db, models).list_requests(
            start, end, validate_int_param(user_id, 'user_id') if user_id else None
        )
        return jsonify({'success': True, 'requests': rows})

    @requests_bp.route('/cell', methods=['POST'])
    @handle_errors
    @with_db_transaction
    def set_cell():
        """
        Upsert one request cell

        Request body:
            actor_id: Caller's user id
            pin: Caller's PIN
            target_user_id: Optional, administrators editing someone else
            date: YYYY-MM-DD
            value: Preference code or 'O'
            important_rank: Optional 1 or 2 (only with 'O')

        Returns:
            JSON with the stored request; tagged errors on rejection
            (QuotaExceeded, PrioritySlotExhausted, CellLocked, WeekClosed, ...)
        """
        data = validate_required_fields(get_json_body(), ['actor_id', 'pin', 'date', 'value'])
        row = get_request_store(db, models).set_cell(
            validate_int_param(data['actor_id'], 'actor_id'),
            str(data['pin']),
            _optional_target(data),
            validate_date_param(data['date']),
            data['value'],
            data.get('important_rank'),
        )
        return jsonify({'success': True, 'request': row})

    @requests_bp.route('/cell/clear', methods=['POST'])
    @handle_errors
    @with_db_transaction
    def clear_cell():
        """
        Remove one request cell

        Request body:
            actor_id, pin, target_user_id (optional), date
        """
        data = validate_required_fields(get_json_body(), ['actor_id', 'pin', 'date'])
        get_request_store(db, models).clear_cell(
            validate_int_param(data['actor_id'], 'actor_id'),
            str(data['pin']),
            _optional_target(data),
            validate_date_param(data['date']),
        )
        return jsonify({'success': True})

    return requests_bp
