# config/__init__.py
"""
Environment configuration objects loaded by the application factory
"""

import os

from config.security import SecurityConfig


def _database_url(default: str) -> str:
    url = os.environ.get('DATABASE_URL') or default
    # Hosted Postgres providers still hand out the legacy scheme
    if url.startswith('postgres://'):
        url = url.replace('postgres://', 'postgresql://', 1)
    return url


class Config(SecurityConfig):
    """Settings shared by every environment"""

    VERSION = os.environ.get('APP_VERSION', '1.0.0')
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    LOG_DIR = os.environ.get('LOG_DIR', 'logs')

    SQLALCHEMY_DATABASE_URI = _database_url('sqlite:///scholarship_tracker.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    DB_POOL_SIZE = int(os.environ.get('DB_POOL_SIZE', 10))
    DB_MAX_OVERFLOW = int(os.environ.get('DB_MAX_OVERFLOW', 20))

    CORS_ORIGINS = os.environ.get('CORS_ORIGINS', 'http://localhost:3000').split(',')

    # Monitoring thresholds
    SLOW_QUERY_THRESHOLD = 1.0  # seconds
    SLOW_REQUEST_THRESHOLD = 1000  # milliseconds

    APP_BASE_URL = os.environ.get('APP_BASE_URL', 'http://localhost:3000')


class DevelopmentConfig(Config):
    DEBUG = True
    SESSION_COOKIE_SECURE = False
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'DEBUG')
    SQLALCHEMY_DATABASE_URI = _database_url('sqlite:///scholarship_tracker_dev.db')


class TestingConfig(Config):
    TESTING = True
    SESSION_COOKIE_SECURE = False
    WTF_CSRF_ENABLED = False
    RATELIMIT_ENABLED = False
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    PASSWORD_HASH_ITERATIONS = 1000
    SECRET_KEY = 'testing-secret-key'
    ENCRYPTION_KEY = 'testing-encryption-key'
    LOG_LEVEL = 'WARNING'


class ProductionConfig(Config):
    pass


CONFIGS = {
    'development': DevelopmentConfig,
    'testing': TestingConfig,
    'production': ProductionConfig,
}
