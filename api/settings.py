# api/settings.py
"""
Account Settings API
"""

from flask import Blueprint, g, jsonify, request
from sqlalchemy.exc import IntegrityError
import logging

from core.database_models import db, ActivityType, User, utcnow
from core.errors import ConflictError, ServiceError, ValidationFailed
from core.schemas import (
    AccountDelete, EmailChange, PasswordChange, PreferencesUpdate, ProfileUpdate, parse
)
from core.security_manager import security_manager
from middleware.security import end_session, require_auth

settings_bp = Blueprint('settings', __name__)
logger = logging.getLogger(__name__)

PROFILE_TEXT_FIELDS = ('name', 'school', 'major')
EMAIL_IN_USE = 'Email address is already in use'


def _email_in_use(email: str, user_id: int) -> bool:
    return db.session.query(User.id).filter(User.email == email, User.id != user_id).first() is not None


def _check_password(user, password, field='password', message='Password is incorrect'):
    if not security_manager.check_password(password, user.password_hash):
        security_manager.log_security_event('password_check_failed', {'user_id': user.id})
        raise ValidationFailed(message, [{'field': field, 'message': message}])


@settings_bp.route('/api/settings', methods=['GET'])
@require_auth
def get_settings():
    user = g.current_user
    return jsonify({
        'user': user.to_dict(),
        'preferences': user.preferences or {}
    })


@settings_bp.route('/api/settings/profile', methods=['PUT'])
@require_auth
def update_profile():
    """Update name, GPA, graduation year, school, major and phone"""
    user = g.current_user
    try:
        data = parse(ProfileUpdate, request.get_json(silent=True))
        changes = data.model_dump(exclude_unset=True)

        for field, value in changes.items():
            if field in PROFILE_TEXT_FIELDS:
                value = security_manager.sanitize_text(value)
            setattr(user, field, value)

        security_manager.log_activity(user.id, ActivityType.UPDATE_ACCOUNT, 'user', user.id,
                                      {'fields': sorted(changes)})
        db.session.commit()

        return jsonify({'success': True, 'message': 'Profile updated successfully', 'user': user.to_dict()})

    except ServiceError:
        db.session.rollback()
        raise
    except Exception as e:
        db.session.rollback()
        logger.error(f"Profile update error: {str(e)}", exc_info=True)
        return jsonify({'error': 'Failed to update profile'}), 500


@settings_bp.route('/api/settings/preferences', methods=['PUT'])
@require_auth
def update_preferences():
    """Shallow merge into stored preferences"""
    user = g.current_user
    try:
        data = parse(PreferencesUpdate, request.get_json(silent=True))
        user.preferences = {**(user.preferences or {}), **data.preferences}
        db.session.commit()

        return jsonify({
            'success': True,
            'message': 'Preferences updated successfully',
            'preferences': user.preferences
        })

    except ServiceError:
        db.session.rollback()
        raise
    except Exception as e:
        db.session.rollback()
        logger.error(f"Preferences update error: {str(e)}", exc_info=True)
        return jsonify({'error': 'Failed to update preferences'}), 500


@settings_bp.route('/api/settings/password', methods=['POST'])
@require_auth
def change_password():
    user = g.current_user
    try:
        data = parse(PasswordChange, request.get_json(silent=True))

        if data.new_password != data.confirm_password:
            raise ValidationFailed('New passwords do not match', [
                {'field': 'confirmPassword', 'message': 'New passwords do not match'}
            ])
        security_manager.require_strong_password(data.new_password, field='newPassword')
        _check_password(user, data.current_password, field='currentPassword',
                        message='Current password is incorrect')
        if data.new_password == data.current_password:
            raise ValidationFailed('New password must be different from the current password', [
                {'field': 'newPassword', 'message': 'New password must be different from the current password'}
            ])

        user.password_hash = security_manager.make_password_hash(data.new_password)
        security_manager.log_activity(user.id, ActivityType.UPDATE_PASSWORD)
        db.session.commit()

        security_manager.log_security_event('password_changed', {'user_id': user.id})
        return jsonify({'success': True, 'message': 'Password changed successfully'})

    except ServiceError:
        db.session.rollback()
        raise
    except Exception as e:
        db.session.rollback()
        logger.error(f"Password change error: {str(e)}", exc_info=True)
        return jsonify({'error': 'Failed to change password'}), 500


@settings_bp.route('/api/settings/email', methods=['POST'])
@require_auth
def change_email():
    user = g.current_user
    try:
        data = parse(EmailChange, request.get_json(silent=True))
        new_email = security_manager.normalize_email(data.new_email)
        _check_password(user, data.password)

        if _email_in_use(new_email, user.id):
            raise ConflictError(EMAIL_IN_USE)

        previous = user.email
        user.email = new_email
        user.email_verified = False
        security_manager.log_activity(user.id, ActivityType.UPDATE_ACCOUNT, 'user', user.id,
                                      {'fields': ['email']})
        try:
            db.session.commit()
        except IntegrityError:
            raise ConflictError(EMAIL_IN_USE)

        security_manager.log_security_event('email_changed', {'user_id': user.id, 'previous': previous})
        return jsonify({
            'success': True,
            'message': 'Email updated successfully. Please verify your new email address.',
            'user': user.to_dict()
        })

    except ServiceError:
        db.session.rollback()
        raise
    except Exception as e:
        db.session.rollback()
        logger.error(f"Email change error: {str(e)}", exc_info=True)
        return jsonify({'error': 'Failed to change email'}), 500


@settings_bp.route('/api/settings/account', methods=['DELETE'])
@require_auth
def delete_account():
    """Soft delete the account and sign out"""
    user = g.current_user
    try:
        data = parse(AccountDelete, request.get_json(silent=True))
        _check_password(user, data.password)

        user.deleted_at = utcnow()
        user.is_active = False
        security_manager.log_activity(user.id, ActivityType.DELETE_ACCOUNT)
        db.session.commit()

        security_manager.log_security_event('account_deleted', {'user_id': user.id})
        end_session()

        return jsonify({'success': True, 'message': 'Account deleted successfully'})

    except ServiceError:
        db.session.rollback()
        raise
    except Exception as e:
        db.session.rollback()
        logger.error(f"Account deletion error: {str(e)}", exc_info=True)
        return jsonify({'error': 'Failed to delete account'}), 500
