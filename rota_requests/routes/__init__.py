"""
Route blueprints for the Rota Requests API

Each ``init_*_routes(db, models)`` builds a fresh blueprint so the
application factory can be called more than once (tests, tooling).
"""
from flask import current_app, request

from rota_requests.error_handlers.exceptions import AuthenticationException
from rota_requests.services.request_store import RequestStore
from rota_requests.utils.validators import validate_int_param


def get_request_store(db, models):
    """RequestStore bound to the current request's session."""
    return RequestStore(db.session, models, current_app.config.get('MAX_REQUESTS_PER_WEEK'))


def get_json_body():
    return request.get_json(silent=True) or {}


def header_credentials():
    """(user_id, pin) sent as X-Rota-User / X-Rota-Pin on read endpoints that need a PIN."""
    user_id = request.headers.get('X-Rota-User')
    pin = request.headers.get('X-Rota-Pin')
    if not user_id or not pin:
        raise AuthenticationException('Missing session PIN. Log in again.')
    return validate_int_param(user_id, 'X-Rota-User'), pin


__all__ = ['get_request_store', 'get_json_body', 'header_credentials']
