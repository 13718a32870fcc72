"""
Rota API Blueprint
Read models for users, periods, their dates and weeks, plus week comments
"""
from flask import Blueprint, jsonify, request

from rota_requests.error_handlers import handle_errors, with_db_transaction
from rota_requests.routes import get_json_body, get_request_store, header_credentials
from rota_requests.utils.validators import validate_int_param, validate_required_fields


def _flag(name):
    return request.args.get(name, '').lower() in ('1', 'true', 'yes')


def init_rota_routes(db, models):
    """
    Initialize rota routes with database and models

    Args:
        db: SQLAlchemy database instance
        models: Dictionary of model classes
    """
    rota_bp = Blueprint('rota_api', __name__, url_prefix='/api')

    @rota_bp.route('/users', methods=['GET'])
    @handle_errors
    def list_users():
        """
        List users in roster order

        Query params:
            include_inactive: Include deactivated users (default false)
        """
        users = get_request_store(db, models).list_users(include_inactive=_flag('include_inactive'))
        return jsonify({'success': True, 'users': users})

    @rota_bp.route('/periods', methods=['GET'])
    @handle_errors
    def list_periods():
        """
        List rota periods, oldest first

        Query params:
            include_hidden: Include hidden periods (default false)
        """
        store = get_request_store(db, models)
        periods = store.list_periods(include_hidden=_flag('include_hidden'))
        active = store.active_period()
        return jsonify({
            'success': True,
            'periods': periods,
            'active_period_id': active['id'] if active else None,
        })

    @rota_bp.route('/periods/<int:period_id>/dates', methods=['GET'])
    @handle_errors
    def period_dates(period_id):
        """Flat date rows with their week's open flags"""
        dates = get_request_store(db, models).rota_dates(period_id)
        return jsonify({'success': True, 'dates': dates})

    @rota_bp.route('/periods/<int:period_id>/weeks', methods=['GET'])
    @handle_errors
    def period_weeks(period_id):
        weeks = get_request_store(db, models).list_weeks(period_id)
        return jsonify({'success': True, 'weeks': weeks})

    @rota_bp.route('/weeks/<int:week_id>/comments', methods=['GET'])
    @handle_errors
    def week_comments(week_id):
        """
        Week comments visible to the caller

        Headers:
            X-Rota-User: Caller's user id
            X-Rota-Pin: Caller's PIN
        """
        user_id, pin = header_credentials()
        comments = get_request_store(db, models).week_comments(week_id, user_id, pin)
        return jsonify({'success': True, 'comments': comments})

    @rota_bp.route('/weeks/<int:week_id>/comments', methods=['PUT'])
    @handle_errors
    @with_db_transaction
    def save_week_comment(week_id):
        """
        Create or replace a week comment

        Request body:
            actor_id: Caller's user id
            pin: Caller's PIN
            target_user_id: Optional, administrators commenting for someone else
            comment: Text (empty clears it)
        """
        data = validate_required_fields(get_json_body(), ['actor_id', 'pin'])
        target = data.get('target_user_id')
        comment = get_request_store(db, models).save_week_comment(
            week_id,
            validate_int_param(data['actor_id'], 'actor_id'),
            str(data['pin']),
            data.get('comment') or '',
            target_user_id=validate_int_param(target, 'target_user_id') if target is not None else None,
        )
        return jsonify({'success': True, 'comment': comment})

    return rota_bp
