"""
Configuration management for the Rota Requests service
Handles environment-based settings for the server of record and the
request API client

Uses a lazy validation pattern so development and tests run without
production secrets.
"""
import secrets
from decouple import config
from typing import Optional

from . import rules


class Config:
    """Base configuration class"""
    # Flask settings
    # Development: Generate random key on startup (non-persistent OK for dev)
    SECRET_KEY = config('SECRET_KEY', default=secrets.token_hex(32))
    SQLALCHEMY_DATABASE_URI = config('DATABASE_URL', default='sqlite:///instance/rota_requests.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Request rules
    MAX_REQUESTS_PER_WEEK = config('MAX_REQUESTS_PER_WEEK', default=rules.MAX_REQUESTS_PER_WEEK, cast=int)
    WINDOW_WEEKS = config('WINDOW_WEEKS', default=rules.WINDOW_WEEKS, cast=int)
    CLOSE_SOON_HOURS = config('CLOSE_SOON_HOURS', default=rules.CLOSE_SOON_HOURS, cast=int)
    DEFAULT_LANGUAGE = config('DEFAULT_LANGUAGE', default=rules.DEFAULT_LANGUAGE)

    # Request API client settings (used by HttpRemoteStore)
    REQUEST_API_BASE_URL = config('REQUEST_API_BASE_URL', default='http://localhost:8000')
    REQUEST_API_TIMEOUT = config('REQUEST_API_TIMEOUT', default=15, cast=int)

    # Cross-page session carrier lifetime (seconds)
    CARRIER_MAX_AGE = config('CARRIER_MAX_AGE', default=8 * 3600, cast=int)

    # PIN verification is the only brute-forceable endpoint
    PIN_LOGIN_RATELIMIT = config('PIN_LOGIN_RATELIMIT', default='10 per minute')

    # Rate limiting
    RATELIMIT_ENABLED = config('RATELIMIT_ENABLED', default=True, cast=bool)
    RATELIMIT_DEFAULT = config('RATELIMIT_DEFAULT', default='600 per hour')

    # Logging settings
    LOG_LEVEL = config('LOG_LEVEL', default='INFO')
    LOG_FILE = config('LOG_FILE', default='logs/rota_requests.log')

    @classmethod
    def validate(cls) -> None:
        """
        Validate configuration - can be called explicitly or on-demand

        Raises:
            ValueError: If required configuration is missing
        """
        pass  # Base config has no required validation


class DevelopmentConfig(Config):
    """Development configuration"""
    DEBUG = True
    TESTING = False


class TestingConfig(Config):
    """Testing configuration"""
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    WTF_CSRF_ENABLED = False
    RATELIMIT_ENABLED = False
    LOG_FILE = config('TEST_LOG_FILE', default='logs/rota_requests_test.log')


class ProductionConfig(Config):
    """Production configuration"""
    DEBUG = False
    TESTING = False

    SECRET_KEY = config('SECRET_KEY', default='change-this-to-a-random-secret-key-in-production')

    # Session Security
    SESSION_COOKIE_SECURE = config('SESSION_COOKIE_SECURE', default=True, cast=bool)
    SESSION_COOKIE_HTTPONLY = config('SESSION_COOKIE_HTTPONLY', default=True, cast=bool)
    SESSION_COOKIE_SAMESITE = config('SESSION_COOKIE_SAMESITE', default='Lax')

    # CSRF Protection
    WTF_CSRF_ENABLED = True
    WTF_CSRF_TIME_LIMIT = config('WTF_CSRF_TIME_LIMIT', default=3600, cast=int)

    # Database Connection Pool (for production databases)
    SQLALCHEMY_ENGINE_OPTIONS = {
        'pool_size': config('DB_POOL_SIZE', default=10, cast=int),
        'pool_recycle': config('DB_POOL_RECYCLE', default=3600, cast=int),
        'pool_pre_ping': True,
        'max_overflow': config('DB_MAX_OVERFLOW', default=20, cast=int),
    }

    # Logging
    LOG_LEVEL = config('LOG_LEVEL', default='WARNING')

    @classmethod
    def validate(cls) -> None:
        """
        Production mode: validate all required settings

        Raises:
            ValueError: If any required configuration is missing
        """
        try:
            secret_key = config('SECRET_KEY')
        except Exception:
            raise ValueError(
                "SECRET_KEY environment variable must be set in production. "
                "Generate a secure key with: python -c 'import secrets; print(secrets.token_hex(32))'"
            )

        if len(secret_key) < 32:
            raise ValueError(
                f"SECRET_KEY must be at least 32 characters in production (current: {len(secret_key)})."
            )


# Configuration mapping
config_mapping = {
    'development': DevelopmentConfig,
    'testing': TestingConfig,
    'production': ProductionConfig,
    'default': DevelopmentConfig
}


def get_config(config_name: Optional[str] = None, validate: bool = False) -> type:
    """
    Get configuration class based on environment.

    Args:
        config_name: Environment name ('development', 'testing', 'production')
        validate: Whether to validate configuration immediately (default: False)

    Returns:
        Config class for the specified environment

    Raises:
        ValueError: If validation is enabled and required variables are missing

    Example:
        >>> config = get_config('production', validate=True)
    """
    if config_name is None:
        config_name = config('FLASK_ENV', default='development')

    config_class = config_mapping.get(config_name, DevelopmentConfig)

    if validate:
        config_class.validate()

    return config_class
