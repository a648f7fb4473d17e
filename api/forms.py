# api/forms.py
"""
Form configuration API used by the client to render conditional fields
"""

from flask import Blueprint, jsonify, request
import logging

from core.errors import ValidationFailed
from core.schemas import GoalTotalsRequest, parse
from services import forms

forms_bp = Blueprint('forms', __name__)
logger = logging.getLogger(__name__)


@forms_bp.route('/api/forms/registration', methods=['GET'])
def registration_form():
    role = request.args.get('role', 'Student')
    education_level = request.args.get('educationLevel') or None
    try:
        return jsonify(forms.registration_fields(role, education_level))
    except ValueError as e:
        raise ValidationFailed('Validation failed', [{'field': 'role', 'message': str(e)}])


@forms_bp.route('/api/forms/financial-goal', methods=['GET'])
def financial_goal_form():
    method = request.args.get('calculationMethod', forms.DETAILED_BREAKDOWN)
    try:
        return jsonify(forms.goal_form_fields(method))
    except ValueError as e:
        raise ValidationFailed('Validation failed', [{'field': 'calculationMethod', 'message': str(e)}])


@forms_bp.route('/api/forms/financial-goal/templates', methods=['GET'])
def financial_goal_templates():
    """Quick-start goal templates with their typical cost ranges"""
    return jsonify({'templates': forms.goal_templates()})


@forms_bp.route('/api/forms/financial-goal/totals', methods=['POST'])
def financial_goal_totals():
    """Recalculate the detailed-breakdown totals for the goal editor"""
    data = parse(GoalTotalsRequest, request.get_json(silent=True))
    return jsonify(forms.recalculate_totals(data.expenses, data.funding_sources))
