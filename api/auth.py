# api/auth.py
"""
Session Authentication API
"""

from flask import Blueprint, current_app, jsonify, request
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_wtf.csrf import generate_csrf
from sqlalchemy.exc import IntegrityError
import logging

from core.database_models import db, ActivityType, User, UserRole, utcnow
from core.errors import AuthenticationError, ConflictError, ServiceError, ValidationFailed
from core.schemas import (
    ForgotPasswordRequest, LoginRequest, RegisterRequest, ResetPasswordRequest, parse
)
from core.security_manager import SecurityManager, security_manager
from middleware.security import current_user, end_session, start_session
from services import forms

auth_bp = Blueprint('auth', __name__)
logger = logging.getLogger(__name__)

# Rate limiter for authentication endpoints
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=["200 per hour"]
)

INVALID_CREDENTIALS = 'Invalid email or password. Please try again.'
RESET_REQUESTED = "If an account with that email exists, we've sent a password reset link."
INVALID_RESET_TOKEN = 'Invalid or expired reset token. Please request a new password reset.'
EMAIL_TAKEN = 'An account with this email already exists'


def _email_in_use(email: str) -> bool:
    return db.session.query(User.id).filter(User.email == email).first() is not None


def _login_limit():
    return current_app.config.get('LOGIN_RATE_LIMIT', '5 per minute')


def _reset_limit():
    return current_app.config.get('PASSWORD_RESET_RATE_LIMIT', '3 per minute')


def _registration_profile(data: RegisterRequest) -> dict:
    """Role dependent profile columns for a new account"""
    role_label = data.role.value.capitalize()
    profile = {}

    if data.role == UserRole.STUDENT:
        if data.education_level not in forms.EDUCATION_LEVEL_OPTIONS:
            raise ValidationFailed('Validation failed', [
                {'field': 'educationLevel', 'message': 'Please select your current education status'}
            ])
        profile['education_level'] = forms.map_education_level(data.education_level)
        profile['educational_status'] = forms.map_educational_status(data.education_level)
        profile['graduation_year'] = data.graduation_year
        profile['major'] = security_manager.sanitize_text(data.major)
        if forms.shows_description(role_label, data.education_level):
            profile['educational_description'] = security_manager.sanitize_text(data.educational_description)

    if forms.shows_institution(role_label, data.education_level):
        profile['school'] = security_manager.sanitize_text(data.institution)

    return profile


@auth_bp.route('/api/auth/csrf-token', methods=['GET'])
def csrf_token():
    """Issue a CSRF token for the client to echo in X-CSRFToken"""
    return jsonify({'csrfToken': generate_csrf()})


@auth_bp.route('/api/auth/register', methods=['POST'])
def register():
    """
    Create an account and sign it in
    """
    try:
        data = parse(RegisterRequest, request.get_json(silent=True))
        email = security_manager.normalize_email(data.email)
        security_manager.require_strong_password(data.password)

        if _email_in_use(email):
            raise ConflictError(EMAIL_TAKEN)

        user = User(
            email=email,
            name=security_manager.sanitize_text(data.name),
            password_hash=security_manager.make_password_hash(data.password),
            role=data.role,
            phone=data.phone,
            **_registration_profile(data)
        )
        db.session.add(user)
        try:
            db.session.flush()
        except IntegrityError:
            # a concurrent registration claimed the address after the check above
            raise ConflictError(EMAIL_TAKEN)
        security_manager.log_activity(user.id, ActivityType.SIGN_UP)
        db.session.commit()

        start_session(user)
        security_manager.log_security_event('account_created', {'user_id': user.id, 'role': user.role.value})

        return jsonify({
            'success': True,
            'user': user.to_dict(),
            'message': 'Account created successfully'
        }), 201

    except ServiceError:
        db.session.rollback()
        raise
    except Exception as e:
        db.session.rollback()
        logger.error(f"Registration error: {str(e)}", exc_info=True)
        return jsonify({'error': 'Failed to create account'}), 500


@auth_bp.route('/api/auth/login', methods=['POST'])
@limiter.limit(_login_limit)
def login():
    """
    Verify credentials and start a session
    """
    try:
        data = parse(LoginRequest, request.get_json(silent=True))
        try:
            email = security_manager.normalize_email(data.email)
        except ValidationFailed:
            security_manager.log_security_event('login_failed', {'reason': 'invalid_email'})
            raise AuthenticationError(INVALID_CREDENTIALS)

        user = db.session.query(User).filter(User.email == email).first()
        if (user is None or user.is_deleted or not user.is_active
                or not security_manager.check_password(data.password, user.password_hash)):
            security_manager.log_security_event('login_failed', {
                'reason': 'invalid_credentials',
                'email': email
            })
            raise AuthenticationError(INVALID_CREDENTIALS)

        security_manager.log_activity(user.id, ActivityType.SIGN_IN)
        db.session.commit()
        start_session(user)

        security_manager.log_security_event('login_success', {'user_id': user.id})

        return jsonify({'success': True, 'user': user.to_dict()})

    except ServiceError:
        db.session.rollback()
        raise
    except Exception as e:
        db.session.rollback()
        logger.error(f"Login error: {str(e)}", exc_info=True)
        return jsonify({'error': 'Internal server error'}), 500


@auth_bp.route('/api/auth/logout', methods=['POST'])
def logout():
    """Clear the session"""
    try:
        user = current_user()
        if user is not None:
            security_manager.log_activity(user.id, ActivityType.SIGN_OUT)
            db.session.commit()
            security_manager.log_security_event('logout', {'user_id': user.id})

        end_session()

        return jsonify({'success': True, 'message': 'Logged out successfully'})

    except Exception as e:
        db.session.rollback()
        logger.error(f"Logout error: {str(e)}", exc_info=True)
        return jsonify({'error': 'Logout failed'}), 500


@auth_bp.route('/api/auth/session', methods=['GET'])
def get_session():
    user = current_user()
    return jsonify({'user': user.to_dict() if user else None})


@auth_bp.route('/api/auth/forgot-password', methods=['POST'])
@limiter.limit(_reset_limit)
def forgot_password():
    """
    Issue a one hour reset token; the response never reveals whether the
    address belongs to an account
    """
    try:
        data = parse(ForgotPasswordRequest, request.get_json(silent=True))
        email = security_manager.normalize_email(data.email)

        user = db.session.query(User).filter(User.email == email, User.deleted_at.is_(None)).first()
        if user is not None:
            token, digest = SecurityManager.generate_reset_token()
            user.reset_token = digest
            user.reset_token_expiry = utcnow() + security_manager.reset_ttl
            db.session.commit()

            security_manager.log_security_event('password_reset_requested', {'user_id': user.id})
            if current_app.debug:
                base_url = current_app.config['APP_BASE_URL']
                logger.info(f"Password reset link for {email}: {base_url}/reset-password?token={token}")

        return jsonify({'success': True, 'message': RESET_REQUESTED})

    except ServiceError:
        db.session.rollback()
        raise
    except Exception as e:
        db.session.rollback()
        logger.error(f"Password reset request error: {str(e)}", exc_info=True)
        return jsonify({'error': 'An error occurred while processing your request. Please try again.'}), 500


@auth_bp.route('/api/auth/reset-password', methods=['POST'])
@limiter.limit(_reset_limit)
def reset_password():
    """Set a new password using a reset token"""
    try:
        data = parse(ResetPasswordRequest, request.get_json(silent=True))

        if data.password != data.confirm_password:
            raise ValidationFailed('Validation failed', [
                {'field': 'confirmPassword', 'message': "Passwords don't match"}
            ])
        security_manager.require_strong_password(data.password)

        user = db.session.query(User).filter(
            User.reset_token == SecurityManager.digest_token(data.token),
            User.reset_token_expiry > utcnow(),
            User.deleted_at.is_(None),
        ).first()
        if user is None:
            raise ValidationFailed(INVALID_RESET_TOKEN, [{'field': 'token', 'message': INVALID_RESET_TOKEN}])

        user.password_hash = security_manager.make_password_hash(data.password)
        user.reset_token = None
        user.reset_token_expiry = None
        security_manager.log_activity(user.id, ActivityType.RESET_PASSWORD)
        db.session.commit()

        security_manager.log_security_event('password_reset_completed', {'user_id': user.id})

        return jsonify({
            'success': True,
            'message': 'Your password has been reset successfully. You can now sign in with your new password.'
        })

    except ServiceError:
        db.session.rollback()
        raise
    except Exception as e:
        db.session.rollback()
        logger.error(f"Password reset error: {str(e)}", exc_info=True)
        return jsonify({'error': 'An error occurred while resetting your password. Please try again.'}), 500
