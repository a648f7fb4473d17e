# api/dashboard.py
"""
Dashboard API
"""

from flask import Blueprint, g, jsonify
import logging

from middleware.security import require_auth
from services.dashboard import build_dashboard

dashboard_bp = Blueprint('dashboard', __name__)
logger = logging.getLogger(__name__)


@dashboard_bp.route('/api/dashboard', methods=['GET'])
@require_auth
def get_dashboard():
    """
    Scholarships, application statistics, welcome stats, financial metrics
    and recent activity for the signed-in user
    """
    try:
        return jsonify(build_dashboard(g.current_user))

    except Exception as e:
        logger.error(f"Dashboard error: {str(e)}", exc_info=True)
        return jsonify({'error': 'Internal server error'}), 500
