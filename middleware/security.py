# middleware/security.py
"""
Security Middleware for Request Processing
"""

from flask import current_app, g, jsonify, request, session
from functools import wraps
import logging

from core.database_models import db, User
from core.security_manager import security_manager

logger = logging.getLogger(__name__)


def security_headers(response):
    """Add security headers to all responses"""
    for header, value in current_app.config.get('SECURITY_HEADERS', {}).items():
        response.headers.setdefault(header, value)
    return response


def current_user():
    """The signed-in, non-deleted user for this request, or None"""
    if 'current_user' in g:
        return g.current_user

    user = None
    user_id = session.get('user_id')
    if user_id is not None:
        user = db.session.get(User, user_id)
        if user is not None and (user.is_deleted or not user.is_active):
            user = None
    g.current_user = user
    return user


def start_session(user):
    session.clear()
    session.permanent = True
    session['user_id'] = user.id
    session['role'] = user.role.value
    g.current_user = user


def end_session():
    session.clear()
    g.current_user = None


def require_auth(f):
    """Decorator to require authentication"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if current_user() is None:
            security_manager.log_security_event('unauthorized_access_attempt', {
                'endpoint': request.endpoint,
                'method': request.method
            })
            session.pop('user_id', None)
            return jsonify({'error': 'Unauthorized'}), 401

        return f(*args, **kwargs)
    return decorated_function
