"""
Authentication API Blueprint
PIN verification, PIN change and language preference
"""
from flask import Blueprint, current_app, jsonify
import logging

from rota_requests.error_handlers import handle_errors, with_db_transaction
from rota_requests.extensions import limiter
from rota_requests.routes import get_json_body, get_request_store
from rota_requests.utils.validators import (
    validate_int_param,
    validate_pin_format,
    validate_required_fields,
)

logger = logging.getLogger(__name__)


def _pin_limit():
    return current_app.config.get('PIN_LOGIN_RATELIMIT', '10 per minute')


def init_auth_routes(db, models):
    """
    Initialize authentication routes with database and models

    Args:
        db: SQLAlchemy database instance
        models: Dictionary of model classes
    """
    auth_bp = Blueprint('auth_api', __name__, url_prefix='/api/auth')

    @auth_bp.route('/verify-pin', methods=['POST'])
    @limiter.limit(_pin_limit)
    @handle_errors
    def verify_pin():
        """
        Check a user's PIN

        Request body:
            user_id: User id
            pin: 4-digit PIN

        Returns:
            JSON with ``valid`` true/false. A wrong PIN is not an error.
        """
        data = validate_required_fields(get_json_body(), ['user_id', 'pin'])
        user_id = validate_int_param(data['user_id'], 'user_id')
        pin = validate_pin_format(str(data['pin']))

        valid = get_request_store(db, models).verify_pin(user_id, pin)
        return jsonify({'success': True, 'valid': valid})

    @auth_bp.route('/change-pin', methods=['POST'])
    @limiter.limit(_pin_limit)
    @handle_errors
    @with_db_transaction
    def change_pin():
        """
        Change a user's PIN

        Request body:
            user_id: User id
            old_pin: Current PIN
            new_pin: New 4-digit PIN
        """
        data = validate_required_fields(get_json_body(), ['user_id', 'old_pin', 'new_pin'])
        get_request_store(db, models).change_pin(
            validate_int_param(data['user_id'], 'user_id'),
            str(data['old_pin']),
            str(data['new_pin']),
        )
        return jsonify({'success': True, 'message': 'PIN updated'})

    @auth_bp.route('/language', methods=['POST'])
    @handle_errors
    @with_db_transaction
    def set_language():
        """
        Set the user's preferred language

        Request body:
            user_id: User id
            pin: User's PIN
            lang: 'en' or 'es'
        """
        data = validate_required_fields(get_json_body(), ['user_id', 'pin', 'lang'])
        lang = get_request_store(db, models).set_language(
            validate_int_param(data['user_id'], 'user_id'), str(data['pin']), data['lang']
        )
        return jsonify({'success': True, 'preferred_lang': lang})

    return auth_bp
