# app.py
"""
Flask Application Factory for Scholarship Tracker Pro

The factory wires together:
- SQLAlchemy models and Flask-Migrate
- Session authentication with CSRF protection and rate limiting
- JSON APIs for scholarships, applications, financial goals, dashboard,
  settings, connections, notifications and form configuration
- Structured logging, JSON error handling and health checks
"""

import os
import logging
import logging.handlers
import time
from datetime import datetime, timezone
from pathlib import Path

import click
from flask import Flask, request, jsonify, g
from flask_migrate import Migrate
from flask_cors import CORS
from flask_wtf.csrf import CSRFProtect, CSRFError
from werkzeug.middleware.proxy_fix import ProxyFix
from werkzeug.exceptions import HTTPException
from sqlalchemy import event, text

from config import CONFIGS
from core.database_models import db
from core.errors import ServiceError
from core.security_manager import init_security_manager
from middleware.security import security_headers
from api.auth import auth_bp, limiter
from api.scholarships import scholarships_bp
from api.applications import applications_bp
from api.dashboard import dashboard_bp
from api.financial_goals import financial_goals_bp
from api.settings import settings_bp
from api.connections import connections_bp
from api.notifications import notifications_bp
from api.forms import forms_bp

migrate = Migrate()
csrf = CSRFProtect()


def setup_logging(app: Flask) -> None:
    """
    Configure logging for the application and the module loggers under it

    Module loggers (``api.*``, ``services.*``, ``core.*``) propagate to the
    root logger, so handlers are attached there.
    """
    app.logger.handlers.clear()

    console_formatter = logging.Formatter(
        fmt='%(asctime)s %(name)s[%(process)d]: %(levelname)s %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    detailed_formatter = logging.Formatter(
        fmt='%(asctime)s %(name)-20s %(levelname)-8s %(funcName)-15s:%(lineno)-4d %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    log_level = getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO)
    root = logging.getLogger()
    root.setLevel(log_level)
    for handler in list(root.handlers):
        if getattr(handler, '_scholarship_tracker', False):
            root.removeHandler(handler)

    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(console_formatter)
    stream_handler.setLevel(log_level)
    stream_handler._scholarship_tracker = True
    root.addHandler(stream_handler)

    # Rotating file log for local debugging
    if app.debug and not app.testing:
        log_dir = Path(app.config.get('LOG_DIR', 'logs'))
        log_dir.mkdir(exist_ok=True, parents=True)

        file_handler = logging.handlers.RotatingFileHandler(
            log_dir / 'scholarship-tracker.log',
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5
        )
        file_handler.setFormatter(detailed_formatter)
        file_handler.setLevel(logging.DEBUG)
        file_handler._scholarship_tracker = True
        root.addHandler(file_handler)

    app.logger.setLevel(log_level)

    if not app.debug:
        logging.getLogger('werkzeug').setLevel(logging.WARNING)


def configure_database(app: Flask) -> None:
    """
    Configure SQLAlchemy, migrations and slow query logging
    """
    database_url = app.config['SQLALCHEMY_DATABASE_URI']

    engine_options = {
        'pool_pre_ping': True,  # Verify connections before use
    }
    if not database_url.startswith('sqlite'):
        engine_options.update({
            'pool_size': app.config.get('DB_POOL_SIZE', 10),
            'max_overflow': app.config.get('DB_MAX_OVERFLOW', 20),
            'pool_recycle': 3600,
        })
    if database_url.startswith('postgresql'):
        engine_options['connect_args'] = {
            'application_name': 'scholarship_tracker',
            'connect_timeout': 10,
        }
    app.config.setdefault('SQLALCHEMY_ENGINE_OPTIONS', engine_options)

    db.init_app(app)
    migrate.init_app(app, db)

    threshold = app.config.get('SLOW_QUERY_THRESHOLD', 1.0)

    with app.app_context():
        engine = db.engine

        @event.listens_for(engine, 'before_cursor_execute')
        def receive_before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
            context._query_start_time = time.perf_counter()

        @event.listens_for(engine, 'after_cursor_execute')
        def receive_after_cursor_execute(conn, cursor, statement, parameters, context, executemany):
            total = time.perf_counter() - context._query_start_time
            if total > threshold:
                app.logger.warning(f"Slow query ({total:.2f}s): {statement[:100]}...")

    app.logger.info(f"Database configured: {database_url.split('@')[-1] if '@' in database_url else database_url}")


def configure_security(app: Flask) -> None:
    """
    Configure password hashing, CSRF protection, rate limiting, CORS and
    security headers
    """
    app.security_manager = init_security_manager(app)

    csrf.init_app(app)
    limiter.init_app(app)

    CORS(app,
         origins=app.config.get('CORS_ORIGINS', ['http://localhost:3000']),
         supports_credentials=True,
         allow_headers=['Content-Type', 'X-CSRFToken', 'X-CSRF-Token'])

    app.after_request(security_headers)

    app.logger.info("Security features configured")


def register_blueprints(app: Flask) -> None:
    """
    Register all application blueprints; routes carry their full /api paths
    """
    for blueprint in (
        auth_bp,
        scholarships_bp,
        applications_bp,
        dashboard_bp,
        financial_goals_bp,
        settings_bp,
        connections_bp,
        notifications_bp,
        forms_bp,
    ):
        app.register_blueprint(blueprint)

    app.logger.info("Application blueprints registered")


def configure_error_handlers(app: Flask) -> None:
    """
    Every error leaves the API as JSON with an ``error`` message
    """
    @app.errorhandler(ServiceError)
    def service_error(error):
        if error.status_code >= 500:
            app.logger.error(f"Service error: {error.message}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(CSRFError)
    def csrf_error(error):
        app.logger.warning(f"CSRF validation failed from {request.remote_addr}: {error.description}")
        return jsonify({'error': 'Invalid or missing CSRF token'}), 400

    @app.errorhandler(400)
    def bad_request(error):
        app.logger.warning(f"Bad request from {request.remote_addr}: {error}")
        return jsonify({'error': 'Invalid request format or parameters'}), 400

    @app.errorhandler(401)
    def unauthorized(error):
        app.logger.warning(f"Unauthorized access attempt from {request.remote_addr}")
        return jsonify({'error': 'Unauthorized'}), 401

    @app.errorhandler(403)
    def forbidden(error):
        app.logger.warning(f"Forbidden access attempt from {request.remote_addr}")
        return jsonify({'error': 'Insufficient permissions'}), 403

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({'error': 'The requested resource was not found'}), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({'error': 'Method not allowed'}), 405

    @app.errorhandler(429)
    def rate_limit_exceeded(error):
        app.logger.warning(f"Rate limit exceeded for {request.remote_addr}")
        return jsonify({
            'error': 'Too many requests. Please try again later.',
            'retryAfter': getattr(error, 'retry_after', None) or 60
        }), 429

    @app.errorhandler(500)
    def internal_error(error):
        app.logger.error(f"Internal server error: {error}", exc_info=True)
        return jsonify({'error': 'Internal server error'}), 500

    @app.errorhandler(Exception)
    def handle_exception(e):
        """Handle unexpected exceptions"""
        if isinstance(e, HTTPException):
            return jsonify({'error': e.description or e.name}), e.code

        db.session.rollback()
        app.logger.error(f"Unhandled exception: {e}", exc_info=True)
        return jsonify({'error': 'Internal server error'}), 500


def configure_health_checks(app: Flask) -> None:
    """
    Health check endpoints for monitoring and load balancing
    """
    @app.route('/health')
    def health_check():
        """Basic health check endpoint"""
        return jsonify({
            'status': 'healthy',
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'version': app.config.get('VERSION', '1.0.0')
        })

    @app.route('/health/detailed')
    def detailed_health_check():
        """Health check including database connectivity"""
        health_status = {
            'status': 'healthy',
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'version': app.config.get('VERSION', '1.0.0'),
            'components': {}
        }

        try:
            db.session.execute(text('SELECT 1'))
            health_status['components']['database'] = 'healthy'
        except Exception as e:
            db.session.rollback()
            app.logger.error(f"Database health check failed: {e}")
            health_status['components']['database'] = f'unhealthy: {str(e)}'
            health_status['status'] = 'unhealthy'

        status_code = 200 if health_status['status'] == 'healthy' else 503
        return jsonify(health_status), status_code


def configure_request_middleware(app: Flask) -> None:
    """
    Request timing and slow request logging
    """
    @app.before_request
    def before_request():
        g.start_time = time.perf_counter()

        if request.endpoint and request.endpoint.startswith(('auth.', 'settings.')):
            app.logger.debug(f"Sensitive endpoint access: {request.endpoint} from {request.remote_addr}")

    @app.after_request
    def after_request(response):
        if 'start_time' in g:
            duration = (time.perf_counter() - g.start_time) * 1000
            if duration > app.config.get('SLOW_REQUEST_THRESHOLD', 1000):
                app.logger.warning(f"Slow request ({duration:.0f}ms): {request.method} {request.path}")
        return response


def register_commands(app: Flask) -> None:
    """Flask CLI commands: ``flask init-db`` and ``flask seed-demo``"""

    @app.cli.command('init-db')
    def init_db():
        """Create all database tables."""
        db.create_all()
        click.echo('Database tables created')

    @app.cli.command('seed-demo')
    @click.option('--password', default=None, help='Password for the demo accounts.')
    def seed_demo(password):
        """Create demo students with scholarships and financial goals."""
        from services.seed_data import DEMO_PASSWORD, seed_demo_data

        db.create_all()
        counts = seed_demo_data(password or DEMO_PASSWORD)
        click.echo(
            f"Seeded {counts['users']} users, {counts['scholarships']} scholarships, "
            f"{counts['goals']} financial goals"
        )


def create_app(config_name: str = None) -> Flask:
    """
    Flask application factory

    Args:
        config_name: Configuration environment ('development', 'testing', 'production')

    Returns:
        Configured Flask application instance
    """
    app = Flask(__name__, instance_relative_config=True)

    config_name = config_name or os.environ.get('FLASK_ENV', 'development')
    app.config.from_object(CONFIGS.get(config_name, CONFIGS['production']))

    # Configure proxy handling for production deployment behind nginx
    if config_name == 'production':
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_prefix=1)

    setup_logging(app)
    app.logger.info(f"Starting Scholarship Tracker Pro in {config_name} mode")

    configure_database(app)
    configure_security(app)
    register_blueprints(app)
    configure_error_handlers(app)
    configure_health_checks(app)
    configure_request_middleware(app)
    register_commands(app)

    # Create database tables (in production, use migrations instead)
    if config_name == 'development':
        with app.app_context():
            db.create_all()
            app.logger.info("Database tables created (development mode)")

    app.logger.info("Flask application factory completed successfully")
    return app
