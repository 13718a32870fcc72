"""
Flask application factory.

This module implements the application factory pattern for creating
Flask application instances with different configurations.
"""

from flask import Flask
import os
from datetime import datetime

from .extensions import db, migrate, csrf, limiter
from .config import get_config


def create_app(config_name=None):
    """
    Application factory function.

    Args:
        config_name: Configuration name (development, testing, production)
                    If None, determined from environment

    Returns:
        Flask application instance
    """
    app = Flask(__name__)

    # Apply ProxyFix for correct IP and scheme handling behind reverse proxies
    from werkzeug.middleware.proxy_fix import ProxyFix
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_prefix=1)

    # Load configuration
    config_class = get_config(config_name, validate=(config_name == 'production'))
    app.config.from_object(config_class)

    app.config['VERSION'] = datetime.now().strftime('%Y%m%d%H%M%S')

    # Ensure instance directory exists
    basedir = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))
    os.makedirs(os.path.join(basedir, "instance"), exist_ok=True)

    # Update database URI to use absolute path
    if app.config['SQLALCHEMY_DATABASE_URI'].startswith('sqlite:///instance/'):
        db_name = app.config['SQLALCHEMY_DATABASE_URI'][len('sqlite:///instance/'):]
        app.config['SQLALCHEMY_DATABASE_URI'] = f'sqlite:///{os.path.join(basedir, "instance", db_name)}'

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    csrf.init_app(app)

    # Initialize rate limiter
    limiter.init_app(app)
    limiter._default_limits = [app.config.get('RATELIMIT_DEFAULT', '600 per hour')]
    limiter._enabled = app.config.get('RATELIMIT_ENABLED', True)

    # Enable foreign key constraints for SQLite
    from sqlalchemy import event
    from sqlalchemy.engine import Engine

    @event.listens_for(Engine, "connect")
    def set_sqlite_pragma(dbapi_conn, connection_record):
        """Enable foreign key constraints for SQLite connections"""
        if 'sqlite' in str(type(dbapi_conn)).lower():
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    # Configure logging and error handling
    from rota_requests.error_handlers import setup_logging, register_error_handlers
    setup_logging(app)
    register_error_handlers(app)

    # Initialize database models
    from rota_requests.models import init_models, model_registry
    models = init_models(db)

    model_registry.init_app(app)
    model_registry.register(models)

    register_blueprints(app, db, models)

    setup_request_handlers(app)

    return app


def register_blueprints(app, db, models):
    """Register all Flask blueprints."""

    from rota_requests.routes.health import health_bp
    app.register_blueprint(health_bp)

    from rota_requests.routes.auth import init_auth_routes
    auth_bp = init_auth_routes(db, models)
    app.register_blueprint(auth_bp)

    from rota_requests.routes.rota import init_rota_routes
    rota_bp = init_rota_routes(db, models)
    app.register_blueprint(rota_bp)

    from rota_requests.routes.requests_api import init_request_routes
    requests_bp = init_request_routes(db, models)
    app.register_blueprint(requests_bp)

    from rota_requests.routes.locks import init_lock_routes
    locks_bp = init_lock_routes(db, models)
    app.register_blueprint(locks_bp)

    from rota_requests.routes.notices import init_notice_routes
    notices_bp = init_notice_routes(db, models)
    app.register_blueprint(notices_bp)

    from rota_requests.routes.admin import init_admin_routes
    admin_bp = init_admin_routes(db, models)
    app.register_blueprint(admin_bp)

    # The JSON API authenticates every write with the user's PIN instead of
    # a browser session, so CSRF tokens do not apply to it
    for blueprint in (auth_bp, rota_bp, requests_bp, locks_bp, notices_bp, admin_bp):
        csrf.exempt(blueprint)

    limiter.exempt(health_bp)


def setup_request_handlers(app):
    """Setup request and response handlers."""

    @app.after_request
    def add_no_store_header(response):
        """Rota state must never come from a cache; clients reload explicitly."""
        if response.mimetype == 'application/json':
            response.headers.setdefault('Cache-Control', 'no-store')
        return response


def init_db(app):
    """Initialize the database."""
    with app.app_context():
        db.create_all()
