"""
Health Check Endpoints
Provides endpoints for application health monitoring and readiness checks.
"""
from flask import Blueprint, jsonify, current_app
from datetime import datetime
import sys
import os

from sqlalchemy import text

from rota_requests.extensions import db

health_bp = Blueprint('health', __name__, url_prefix='/health')


@health_bp.route('/ping', methods=['GET'])
def ping():
    """
    Simple ping endpoint for basic connectivity checks.
    Returns: 200 OK with pong message
    """
    return jsonify({
        'status': 'ok',
        'message': 'pong',
        'timestamp': datetime.utcnow().isoformat()
    }), 200


@health_bp.route('/live', methods=['GET'])
def liveness():
    """
    Liveness probe - the process is up and serving requests.

    Returns:
        200: Application is alive
    """
    return jsonify({
        'status': 'alive',
        'pid': os.getpid(),
        'python_version': sys.version.split()[0],
        'version': current_app.config.get('VERSION'),
        'timestamp': datetime.utcnow().isoformat()
    }), 200


@health_bp.route('/ready', methods=['GET'])
def readiness():
    """
    Readiness probe - checks if application is ready to serve traffic.
    Validates the database connection.

    Returns:
        200: Application is ready
        503: Application is not ready
    """
    checks = {
        'database': False,
    }
    errors = []

    try:
        db.session.execute(text('SELECT 1'))
        checks['database'] = True
    except Exception as e:
        current_app.logger.error(f"Readiness check failed: {str(e)}")
        errors.append(f"Database: {str(e)}")

    all_checks_passed = all(checks.values())
    status_code = 200 if all_checks_passed else 503

    response = {
        'status': 'ready' if all_checks_passed else 'not_ready',
        'checks': checks,
        'timestamp': datetime.utcnow().isoformat()
    }

    if errors:
        response['errors'] = errors

    return jsonify(response), status_code
