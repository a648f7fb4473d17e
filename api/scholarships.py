# api/scholarships.py
"""
Scholarship API: listing and quick-add
"""

from flask import Blueprint, g, jsonify, request
import logging

from core.database_models import (
    db, ActivityType, Application, ApplicationStatus, Scholarship, ScholarshipStatus
)
from core.errors import PermissionDeniedError, ServiceError, ValidationFailed
from core.roles import can_quick_add_scholarship
from core.schemas import ScholarshipCreate, json_object, parse
from core.security_manager import security_manager
from middleware.security import require_auth
from services.dashboard import user_scholarships

scholarships_bp = Blueprint('scholarships', __name__)
logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ('title', 'amount', 'deadline')

QUICK_ADD_DEFAULTS = {
    'description': 'Scholarship created via Quick Add',
    'provider': 'Self-Added',
    'eligibility_requirements': 'To be determined',
}
QUICK_ADD_NOTE = 'Application created via Quick Add'


@scholarships_bp.route('/api/scholarships', methods=['GET'])
@require_auth
def list_scholarships():
    """Scholarships created by the current user"""
    try:
        scholarships = user_scholarships(g.current_user.id)
        return jsonify({
            'scholarships': [s.to_dict() for s in scholarships],
            'totalCount': len(scholarships)
        })

    except Exception as e:
        logger.error(f"Error fetching scholarships: {str(e)}", exc_info=True)
        return jsonify({'error': 'Failed to fetch scholarships'}), 500


@scholarships_bp.route('/api/scholarships', methods=['POST'])
@require_auth
def create_scholarship():
    """
    Quick-add a scholarship together with a draft application for the
    current user, in one transaction
    """
    user = g.current_user
    try:
        if not can_quick_add_scholarship(user.role):
            raise PermissionDeniedError('Your role cannot add scholarships')

        body = json_object(request.get_json(silent=True))
        if any(body.get(field) in (None, '') for field in REQUIRED_FIELDS):
            raise ValidationFailed('Missing required fields: title, amount, deadline', [
                {'field': field, 'message': 'Field required'}
                for field in REQUIRED_FIELDS if body.get(field) in (None, '')
            ])

        data = parse(ScholarshipCreate, body)

        scholarship = Scholarship(
            title=security_manager.sanitize_text(data.title),
            description=security_manager.sanitize_text(data.description) or QUICK_ADD_DEFAULTS['description'],
            amount=data.amount,
            currency='USD',
            provider=security_manager.sanitize_text(data.provider) or QUICK_ADD_DEFAULTS['provider'],
            application_deadline=data.deadline,
            eligibility_requirements=(security_manager.sanitize_text(data.eligibility_requirements)
                                      or QUICK_ADD_DEFAULTS['eligibility_requirements']),
            education_level=data.education_level,
            status=ScholarshipStatus.ACTIVE,
            created_by=user.id,
        )
        application = Application(
            user_id=user.id,
            status=ApplicationStatus.DRAFT,
            notes=security_manager.sanitize_text(data.notes) or QUICK_ADD_NOTE,
        )
        scholarship.applications.append(application)

        db.session.add(scholarship)
        db.session.flush()
        security_manager.log_activity(user.id, ActivityType.SCHOLARSHIP_CREATED, 'scholarship', scholarship.id)
        security_manager.log_activity(user.id, ActivityType.APPLICATION_CREATED, 'application', application.id)
        db.session.commit()

        logger.info(f"Scholarship {scholarship.id} and application {application.id} created for user {user.id}")

        return jsonify({
            'scholarship': scholarship.to_dict(),
            'application': application.to_dict(),
            'message': 'Scholarship and application created successfully'
        }), 201

    except ServiceError:
        db.session.rollback()
        raise
    except Exception as e:
        db.session.rollback()
        logger.error(f"Error creating scholarship: {str(e)}", exc_info=True)
        return jsonify({'error': 'Failed to create scholarship'}), 500
