"""
Admin API Blueprint
Period deadlines, week open flags, active and hidden periods

Every endpoint takes the administrator's id and PIN in the JSON body.
"""
from flask import Blueprint, jsonify

from rota_requests.error_handlers import handle_errors, with_db_transaction
from rota_requests.routes import get_json_body, get_request_store
from rota_requests.utils.validators import (
    validate_datetime_param,
    validate_int_param,
    validate_required_fields,
)


def _admin(data):
    data = validate_required_fields(data, ['admin_id', 'pin'])
    return validate_int_param(data['admin_id'], 'admin_id'), str(data['pin'])


def _optional_bool(value):
    return None if value is None else bool(value)


def init_admin_routes(db, models):
    """
    Initialize admin routes with database and models

    Args:
        db: SQLAlchemy database instance
        models: Dictionary of model classes
    """
    admin_bp = Blueprint('admin_api', __name__, url_prefix='/api/admin')

    @admin_bp.route('/periods/<int:period_id>/closes-at', methods=['POST'])
    @handle_errors
    @with_db_transaction
    def set_closes_at(period_id):
        """
        Set or clear a period's request deadline

        Request body:
            closes_at: ISO 8601 datetime, or null to remove the deadline
        """
        data = get_json_body()
        admin_id, pin = _admin(data)
        closes_at = validate_datetime_param(data.get('closes_at'), 'closes_at')
        period = get_request_store(db, models).set_period_closes_at(admin_id, pin, period_id, closes_at)
        return jsonify({'success': True, 'period': period})

    @admin_bp.route('/weeks/<int:week_id>/flags', methods=['POST'])
    @handle_errors
    @with_db_transaction
    def set_week_flags(week_id):
        """
        Set a week's open flags

        Request body:
            open: Editable before the deadline (optional)
            open_after_close: Editable after the deadline (optional)
        """
        data = get_json_body()
        admin_id, pin = _admin(data)
        week = get_request_store(db, models).set_week_flags(
            admin_id, pin, week_id,
            open_=_optional_bool(data.get('open')),
            open_after_close=_optional_bool(data.get('open_after_close')),
        )
        return jsonify({'success': True, 'week': week})

    @admin_bp.route('/periods/<int:period_id>/reset-weeks', methods=['POST'])
    @handle_errors
    @with_db_transaction
    def reset_weeks(period_id):
        """
        Reset every week of a period

        Request body:
            mode: open | closed | after_close | default
        """
        data = get_json_body()
        admin_id, pin = _admin(data)
        weeks = get_request_store(db, models).reset_period_weeks(
            admin_id, pin, period_id, data.get('mode') or 'default'
        )
        return jsonify({'success': True, 'weeks': weeks})

    @admin_bp.route('/periods/<int:period_id>/activate', methods=['POST'])
    @handle_errors
    @with_db_transaction
    def activate_period(period_id):
        admin_id, pin = _admin(get_json_body())
        period = get_request_store(db, models).set_active_period(admin_id, pin, period_id)
        return jsonify({'success': True, 'period': period})

    @admin_bp.route('/periods/<int:period_id>/toggle-hidden', methods=['POST'])
    @handle_errors
    @with_db_transaction
    def toggle_hidden(period_id):
        admin_id, pin = _admin(get_json_body())
        period = get_request_store(db, models).toggle_period_hidden(admin_id, pin, period_id)
        return jsonify({'success': True, 'period': period})

    return admin_bp
