# api/applications.py
"""
Application API
"""

from flask import Blueprint, g, jsonify, request
import logging

from core.database_models import db
from core.errors import ServiceError
from core.schemas import ApplicationUpdate, parse
from middleware.security import require_auth
from services import applications as application_service

applications_bp = Blueprint('applications', __name__)
logger = logging.getLogger(__name__)


@applications_bp.route('/api/applications', methods=['GET'])
@require_auth
def list_applications():
    try:
        applications = application_service.list_applications(g.current_user.id)
        return jsonify({
            'applications': [
                dict(a.to_dict(), scholarship=a.scholarship.to_dict()) for a in applications
            ],
            'totalCount': len(applications)
        })

    except Exception as e:
        logger.error(f"Error fetching applications: {str(e)}", exc_info=True)
        return jsonify({'error': 'Failed to fetch applications'}), 500


@applications_bp.route('/api/applications/<int:application_id>', methods=['PATCH'])
@require_auth
def update_application(application_id):
    """Update status, notes or award amount of one of the caller's applications"""
    try:
        data = parse(ApplicationUpdate, request.get_json(silent=True))
        application = application_service.update_application(g.current_user.id, application_id, data)
        return jsonify({'application': application.to_dict()})

    except ServiceError:
        db.session.rollback()
        raise
    except Exception as e:
        db.session.rollback()
        logger.error(f"Error updating application {application_id}: {str(e)}", exc_info=True)
        return jsonify({'error': 'Failed to update application'}), 500
