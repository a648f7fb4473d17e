# api/connections.py
"""
Parent/counselor <-> student connection API
"""

from flask import Blueprint, g, jsonify, request
import logging

from core.database_models import db, ActivityType, User, UserConnection, UserRole
from core.errors import (
    ConflictError, NotFoundError, PermissionDeniedError, ServiceError, ValidationFailed
)
from core.roles import has_permission, invite_direction
from core.schemas import AcceptInviteRequest, InviteRequest, json_object, parse
from core.security_manager import security_manager
from middleware.security import require_auth

connections_bp = Blueprint('connections', __name__)
logger = logging.getLogger(__name__)

DEFAULT_PERMISSIONS = {
    'canViewScholarships': True,
    'canEditScholarships': True,
    'canViewFinancials': True,
    'canEditFinancials': True,
    'canCreateTasks': True,
    'canViewProgress': True,
    'canReceiveNotifications': True,
}

INVALID_INVITE = 'Invalid or expired invitation link.'


def _active_connection(parent_id, child_id):
    return (
        db.session.query(UserConnection)
        .filter(
            UserConnection.parent_user_id == parent_id,
            UserConnection.child_user_id == child_id,
            UserConnection.is_active.is_(True),
        )
        .first()
    )


def _connection_view(connection, viewer_id):
    other = connection.child_user if connection.parent_user_id == viewer_id else connection.parent_user
    data = connection.to_dict()
    data['connectedUser'] = {'id': other.id, 'name': other.name, 'email': other.email, 'role': other.role.value}
    return data


@connections_bp.route('/api/connections', methods=['GET'])
@require_auth
def list_connections():
    """Active connections where the caller is either side"""
    user = g.current_user
    try:
        connections = (
            db.session.query(UserConnection)
            .filter(
                UserConnection.is_active.is_(True),
                (UserConnection.parent_user_id == user.id) | (UserConnection.child_user_id == user.id),
            )
            .order_by(UserConnection.created_at.desc(), UserConnection.id.desc())
            .all()
        )
        return jsonify({'connections': [_connection_view(c, user.id) for c in connections]})

    except Exception as e:
        logger.error(f"Error fetching connections: {str(e)}", exc_info=True)
        return jsonify({'error': 'Failed to fetch connections'}), 500


@connections_bp.route('/api/connections/invite', methods=['POST'])
@require_auth
def invite():
    """
    Create a signed invitation for another account

    Students invite parents or counselors; parents and counselors invite
    students. The invitee role is taken from the existing account when there
    is one, otherwise from ``role`` in the payload.
    """
    user = g.current_user
    try:
        if not has_permission(user.role, 'connections', 'invite'):
            raise PermissionDeniedError('Your role cannot create connection invitations')

        body = json_object(request.get_json(silent=True))
        data = parse(InviteRequest, body)
        email = security_manager.normalize_email(data.email)
        if email == user.email:
            raise ValidationFailed('Validation failed', [
                {'field': 'email', 'message': 'You cannot invite yourself'}
            ])

        invitee = db.session.query(User).filter(User.email == email, User.deleted_at.is_(None)).first()
        if invitee is not None:
            invitee_role = invitee.role
        elif user.role == UserRole.STUDENT:
            invitee_role = str(body.get('role') or UserRole.PARENT.value).lower()
        else:
            invitee_role = UserRole.STUDENT.value

        direction = invite_direction(user.role, invitee_role)
        if direction is None:
            raise ValidationFailed('Validation failed', [
                {'field': 'email', 'message': 'Students can only connect with parents or counselors'}
            ])
        connection_type, inviter_is_student = direction

        if invitee is not None:
            parent_id, child_id = (invitee.id, user.id) if inviter_is_student else (user.id, invitee.id)
            if _active_connection(parent_id, child_id) is not None:
                raise ConflictError('This account is already connected to yours.')

        token = security_manager.create_invite_token({
            'inviterId': user.id,
            'inviterEmail': user.email,
            'inviteeEmail': email,
            'connectionType': connection_type.value,
            'inviterIsStudent': inviter_is_student,
        })
        security_manager.log_security_event('connection_invite_created', {
            'user_id': user.id,
            'connection_type': connection_type.value
        })

        return jsonify({
            'success': True,
            'message': 'Invitation created successfully! Share this link with them.',
            'inviteToken': token,
            'expiresInDays': security_manager.invite_ttl.days
        }), 201

    except ServiceError:
        raise
    except Exception as e:
        logger.error(f"Error creating invitation: {str(e)}", exc_info=True)
        return jsonify({'error': 'Failed to create invitation. Please try again.'}), 500


@connections_bp.route('/api/connections/accept', methods=['POST'])
@require_auth
def accept():
    """Accept an invitation addressed to the caller's email"""
    user = g.current_user
    try:
        data = parse(AcceptInviteRequest, request.get_json(silent=True))
        payload = security_manager.read_invite_token(data.token)
        if payload is None:
            raise ValidationFailed(INVALID_INVITE, [{'field': 'token', 'message': INVALID_INVITE}])

        if payload.get('inviteeEmail') != user.email:
            raise PermissionDeniedError('This invitation is not for your email address.')

        inviter = db.session.get(User, payload.get('inviterId'))
        if inviter is None or inviter.is_deleted:
            raise NotFoundError('The account that sent this invitation no longer exists.')

        direction = invite_direction(inviter.role, user.role)
        if direction is None or direction[1] != payload.get('inviterIsStudent'):
            raise ValidationFailed(INVALID_INVITE, [
                {'field': 'token', 'message': 'This invitation does not match your account type.'}
            ])
        connection_type, inviter_is_student = direction

        parent_id, child_id = (user.id, inviter.id) if inviter_is_student else (inviter.id, user.id)
        if _active_connection(parent_id, child_id) is not None:
            raise ConflictError('This account is already connected to yours.')

        connection = UserConnection(
            parent_user_id=parent_id,
            child_user_id=child_id,
            connection_type=connection_type,
            is_active=True,
            permissions=dict(DEFAULT_PERMISSIONS),
        )
        db.session.add(connection)
        db.session.flush()
        security_manager.log_activity(user.id, ActivityType.CONNECTION_CREATED, 'connection', connection.id)
        db.session.commit()

        logger.info(f"Connection {connection.id} created between {parent_id} and {child_id}")

        return jsonify({
            'success': True,
            'message': 'Connection established successfully!',
            'connection': _connection_view(connection, user.id)
        }), 201

    except ServiceError:
        db.session.rollback()
        raise
    except Exception as e:
        db.session.rollback()
        logger.error(f"Error accepting invitation: {str(e)}", exc_info=True)
        return jsonify({'error': 'Failed to accept invitation. Please try again.'}), 500


@connections_bp.route('/api/connections/<int:connection_id>', methods=['DELETE'])
@require_auth
def remove(connection_id):
    """Deactivate a connection the caller is part of"""
    user = g.current_user
    try:
        connection = db.session.get(UserConnection, connection_id)
        if connection is None or user.id not in (connection.parent_user_id, connection.child_user_id):
            raise NotFoundError('Connection not found')

        connection.is_active = False
        db.session.commit()

        return jsonify({'success': True, 'message': 'Connection removed'})

    except ServiceError:
        db.session.rollback()
        raise
    except Exception as e:
        db.session.rollback()
        logger.error(f"Error removing connection {connection_id}: {str(e)}", exc_info=True)
        return jsonify({'error': 'Failed to remove connection'}), 500
