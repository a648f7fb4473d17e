# api/financial_goals.py
"""
Financial Goals API
"""

from flask import Blueprint, g, jsonify, request
import logging

from core.database_models import db
from core.errors import ServiceError
from core.schemas import GoalCreate, GoalUpdate, parse
from middleware.security import require_auth
from services import forms
from services import goals as goal_service
from services.dashboard import financial_metrics

financial_goals_bp = Blueprint('financial_goals', __name__)
logger = logging.getLogger(__name__)


def _flag(name: str) -> bool:
    return request.args.get(name, '').lower() == 'true'


@financial_goals_bp.route('/api/financial-goals', methods=['GET'])
@require_auth
def list_goals():
    """
    Goals for the current user

    Query args: ``status``, ``type``, ``includeExpenses``, ``includeFunding``
    """
    try:
        goals = goal_service.list_goals(
            g.current_user.id,
            status=request.args.get('status'),
            goal_type=request.args.get('type'),
        )
        include_expenses = _flag('includeExpenses')
        include_funding = _flag('includeFunding')

        return jsonify({
            'success': True,
            'data': {
                'goals': [
                    goal.to_dict(include_expenses=include_expenses, include_funding=include_funding)
                    for goal in goals
                ],
                'summary': goal_service.summarize(goals),
            }
        })

    except ServiceError:
        raise
    except Exception as e:
        logger.error(f"GET /api/financial-goals error: {str(e)}", exc_info=True)
        return jsonify({'error': 'Failed to retrieve financial goals'}), 500


@financial_goals_bp.route('/api/financial-goals', methods=['POST'])
@require_auth
def create_goal():
    """
    Create a goal with its expenses and funding sources atomically

    When ``createdViaTemplate`` names a known template the response carries
    ``templateInsights`` comparing the target with the template's typical range.
    """
    try:
        data = parse(GoalCreate, request.get_json(silent=True))
        goal = goal_service.create_goal(g.current_user.id, data)

        response = {
            'success': True,
            'data': goal.to_dict(include_expenses=True, include_funding=True)
        }
        insights = forms.template_insights(data.created_via_template, data.target_amount)
        if insights is not None:
            response['templateInsights'] = insights
            for warning in insights['warnings']:
                logger.info(f"Goal {goal.id} template warning: {warning}")

        return jsonify(response), 201

    except ServiceError:
        raise
    except Exception as e:
        db.session.rollback()
        logger.error(f"POST /api/financial-goals error: {str(e)}", exc_info=True)
        return jsonify({'error': 'Failed to create financial goal'}), 500


@financial_goals_bp.route('/api/financial-goals/analytics', methods=['GET'])
@require_auth
def goal_analytics():
    """Financial metrics over the user's goals and live scholarship results"""
    try:
        metrics = financial_metrics(g.current_user.id)
        return jsonify({'success': True, 'data': metrics.to_dict()})

    except Exception as e:
        logger.error(f"Financial analytics error: {str(e)}", exc_info=True)
        return jsonify({'error': 'Failed to calculate financial analytics'}), 500


@financial_goals_bp.route('/api/financial-goals/<int:goal_id>', methods=['GET'])
@require_auth
def get_goal(goal_id):
    try:
        goal = goal_service.get_goal(g.current_user.id, goal_id)
        return jsonify({
            'success': True,
            'data': goal.to_dict(include_expenses=True, include_funding=True)
        })

    except ServiceError:
        raise
    except Exception as e:
        logger.error(f"GET /api/financial-goals/{goal_id} error: {str(e)}", exc_info=True)
        return jsonify({'error': 'Failed to retrieve financial goal'}), 500


@financial_goals_bp.route('/api/financial-goals/<int:goal_id>', methods=['PUT'])
@require_auth
def update_goal(goal_id):
    """Partial update; ``expenses``/``fundingSources`` replace the stored lists"""
    try:
        data = parse(GoalUpdate, request.get_json(silent=True))
        goal = goal_service.update_goal(g.current_user.id, goal_id, data)

        return jsonify({
            'success': True,
            'data': goal.to_dict(include_expenses=True, include_funding=True)
        })

    except ServiceError:
        raise
    except Exception as e:
        db.session.rollback()
        logger.error(f"PUT /api/financial-goals/{goal_id} error: {str(e)}", exc_info=True)
        return jsonify({'error': 'Failed to update financial goal'}), 500


@financial_goals_bp.route('/api/financial-goals/<int:goal_id>', methods=['DELETE'])
@require_auth
def delete_goal(goal_id):
    try:
        goal_service.delete_goal(g.current_user.id, goal_id)
        return jsonify({'success': True, 'message': 'Financial goal deleted'})

    except ServiceError:
        raise
    except Exception as e:
        db.session.rollback()
        logger.error(f"DELETE /api/financial-goals/{goal_id} error: {str(e)}", exc_info=True)
        return jsonify({'error': 'Failed to delete financial goal'}), 500
