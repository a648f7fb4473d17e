# core/roles.py
"""
Role based permissions
"""

from typing import Optional

from core.database_models import UserRole, ConnectionType


ROLE_PERMISSIONS = {
    UserRole.STUDENT: {
        'applications': ('create', 'read', 'update', 'delete'),
        'scholarships': ('read', 'save'),
        'profile': ('read', 'update'),
        'notifications': ('read', 'update'),
        'dashboard': ('read',),
        'connections': ('invite',),
    },
    UserRole.PARENT: {
        'applications': ('read',),
        'scholarships': ('read', 'save'),
        'profile': ('read',),
        'notifications': ('read', 'update'),
        'dashboard': ('read',),
        'children': ('read',),
        'connections': ('invite',),
    },
    UserRole.COUNSELOR: {
        'applications': ('read',),
        'scholarships': ('create', 'read', 'update', 'delete', 'save'),
        'profile': ('read', 'update'),
        'notifications': ('create', 'read', 'update'),
        'dashboard': ('read',),
        'students': ('read',),
        'analytics': ('read',),
        'connections': ('invite',),
    },
    UserRole.ADMIN: {
        'applications': ('create', 'read', 'update', 'delete'),
        'scholarships': ('create', 'read', 'update', 'delete', 'save'),
        'profile': ('read', 'update'),
        'notifications': ('create', 'read', 'update', 'delete'),
        'dashboard': ('read',),
        'users': ('create', 'read', 'update', 'delete'),
        'analytics': ('read',),
        'system': ('read', 'update'),
    },
}

ROLE_DISPLAY_NAMES = {
    UserRole.STUDENT: 'Student',
    UserRole.PARENT: 'Parent',
    UserRole.COUNSELOR: 'Counselor',
    UserRole.ADMIN: 'Administrator',
}

# Administrators are provisioned, never self-registered
SELF_REGISTRATION_ROLES = (UserRole.STUDENT, UserRole.PARENT, UserRole.COUNSELOR)


def _as_role(role) -> Optional[UserRole]:
    if isinstance(role, UserRole):
        return role
    try:
        return UserRole(role)
    except ValueError:
        return None


def has_permission(role, resource: str, action: str) -> bool:
    permissions = ROLE_PERMISSIONS.get(_as_role(role))
    if not permissions:
        return False
    return action in permissions.get(resource, ())


def can_quick_add_scholarship(role) -> bool:
    """Quick-add creates a scholarship and a draft application for the caller"""
    return has_permission(role, 'scholarships', 'create') or has_permission(role, 'applications', 'create')


def invite_direction(inviter_role, invitee_role):
    """
    Resolve who is the parent side of a connection.

    Returns a ``(connection_type, inviter_is_student)`` tuple or ``None``
    when the pair cannot be connected. Students invite parents or
    counselors; parents and counselors invite students.
    """
    inviter = _as_role(inviter_role)
    invitee = _as_role(invitee_role)
    if inviter == UserRole.STUDENT and invitee in (UserRole.PARENT, UserRole.COUNSELOR):
        return ConnectionType(invitee.value), True
    if inviter in (UserRole.PARENT, UserRole.COUNSELOR) and invitee == UserRole.STUDENT:
        return ConnectionType(inviter.value), False
    return None
