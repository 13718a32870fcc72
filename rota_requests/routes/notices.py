"""
Notices API Blueprint
Serves notices targeted at a user and records acknowledgments
"""
from flask import Blueprint, jsonify, request

from rota_requests.error_handlers import handle_errors, with_db_transaction
from rota_requests.routes import get_json_body, get_request_store
from rota_requests.utils.validators import validate_int_param, validate_required_fields


def init_notice_routes(db, models):
    """
    Initialize notice routes with database and models

    Args:
        db: SQLAlchemy database instance
        models: Dictionary of model classes
    """
    notices_bp = Blueprint('notices_api', __name__, url_prefix='/api/notices')

    @notices_bp.route('', methods=['GET'])
    @handle_errors
    def get_notices():
        """
        Active notices for a user with their acknowledgment state

        Query params:
            user_id: User id

        Returns:
            JSON list of notices carrying acknowledged_at and ack_version
        """
        user_id = validate_int_param(request.args.get('user_id'), 'user_id')
        notices = get_request_store(db, models).notices_for_user(user_id)
        return jsonify({'success': True, 'notices': notices})

    @notices_bp.route('/<int:notice_id>/ack', methods=['POST'])
    @handle_errors
    @with_db_transaction
    def acknowledge(notice_id):
        """
        Acknowledge a notice at a version

        Request body:
            user_id: User id
            version: Notice version being acknowledged
        """
        data = validate_required_fields(get_json_body(), ['user_id', 'version'])
        get_request_store(db, models).acknowledge_notice(
            validate_int_param(data['user_id'], 'user_id'),
            notice_id,
            validate_int_param(data['version'], 'version'),
        )
        return jsonify({'success': True})

    @notices_bp.route('/ack-counts', methods=['POST'])
    @handle_errors
    def ack_counts():
        """
        Acknowledgment counts for administrators

        Request body:
            admin_id, pin, notice_ids: list of notice ids
        """
        data = validate_required_fields(get_json_body(), ['admin_id', 'pin'])
        notice_ids = [validate_int_param(n, 'notice_ids') for n in data.get('notice_ids') or []]
        counts = get_request_store(db, models).notice_ack_counts(
            validate_int_param(data['admin_id'], 'admin_id'), str(data['pin']), notice_ids
        )
        return jsonify({'success': True, 'counts': counts})

    return notices_bp
