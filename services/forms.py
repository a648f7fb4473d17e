# services/forms.py
"""
Form rules served to the client

Field visibility is a lookup over a few discrete selections (role, education
level option, calculation method). The state machine models one form's
submit cycle: editing -> submitting -> success | error -> editing.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

from core.database_models import EducationLevel
from core.roles import ROLE_DISPLAY_NAMES, SELF_REGISTRATION_ROLES

logger = logging.getLogger(__name__)


ROLE_OPTIONS = tuple(ROLE_DISPLAY_NAMES[role] for role in SELF_REGISTRATION_ROLES)

CURRENTLY_ENROLLED = 'Currently enrolled (specify school below)'
ACCEPTED_PLANNING = 'Accepted/Planning to attend (specify school below)'
APPLYING_MULTIPLE = 'Applying to multiple schools'
COMMUNITY_COLLEGE = 'Community college planning 4-year transfer'
MILITARY_VETERAN = 'Military/Veteran pursuing education'
ADULT_LEARNER = 'Adult learner/Returning to school'
FUNDING_GOAL = 'Working toward specific funding goal'
EXPLORING_OPTIONS = 'Exploring options to maximize scholarships'
OTHER_OPTION = 'Other (please describe)'

EDUCATION_LEVEL_OPTIONS = (
    CURRENTLY_ENROLLED,
    ACCEPTED_PLANNING,
    APPLYING_MULTIPLE,
    COMMUNITY_COLLEGE,
    MILITARY_VETERAN,
    ADULT_LEARNER,
    FUNDING_GOAL,
    EXPLORING_OPTIONS,
    OTHER_OPTION,
)

# option -> (stored education level, stored educational status)
EDUCATION_OPTION_MAPPING = {
    CURRENTLY_ENROLLED: (EducationLevel.UNDERGRADUATE, 'currently_enrolled'),
    ACCEPTED_PLANNING: (EducationLevel.UNDERGRADUATE, 'accepted_planning'),
    APPLYING_MULTIPLE: (EducationLevel.UNDERGRADUATE, 'applying_multiple'),
    COMMUNITY_COLLEGE: (EducationLevel.HIGH_SCHOOL, 'community_college'),
    MILITARY_VETERAN: (EducationLevel.UNDERGRADUATE, 'military_veteran'),
    ADULT_LEARNER: (EducationLevel.UNDERGRADUATE, 'adult_learner'),
    FUNDING_GOAL: (EducationLevel.UNDERGRADUATE, 'funding_goal'),
    EXPLORING_OPTIONS: (EducationLevel.UNDERGRADUATE, 'exploring_options'),
    OTHER_OPTION: (EducationLevel.UNDERGRADUATE, 'other'),
}

INSTITUTION_OPTIONS = {
    CURRENTLY_ENROLLED: ('Current Institution', 'Enter your current school or university name'),
    ACCEPTED_PLANNING: ('Future Institution', "Enter the school you'll be attending"),
    COMMUNITY_COLLEGE: ('Current Institution', 'Enter your current community college name'),
}

STUDENT_NOTES = {
    APPLYING_MULTIPLE: 'You can add schools later in your profile',
    MILITARY_VETERAN: 'Veteran-specific resources note',
    ADULT_LEARNER: 'Adult learner resources note',
}

PARENT_NOTE = "You'll be able to link with your student after account creation"


def normalize_role(role: Optional[str]) -> str:
    """Accept 'student', 'Student', ... and return the display form"""
    value = (role or '').strip().capitalize()
    if value not in ROLE_OPTIONS:
        raise ValueError(f"Unknown role: {role}")
    return value


def map_education_level(option: Optional[str]) -> Optional[EducationLevel]:
    mapping = EDUCATION_OPTION_MAPPING.get(option)
    return mapping[0] if mapping else None


def map_educational_status(option: Optional[str]) -> Optional[str]:
    mapping = EDUCATION_OPTION_MAPPING.get(option)
    return mapping[1] if mapping else None


def shows_education_level(role: str) -> bool:
    return normalize_role(role) == 'Student'


def shows_institution(role: str, education_level: Optional[str]) -> bool:
    role = normalize_role(role)
    if role == 'Counselor':
        return True
    return role == 'Student' and education_level in INSTITUTION_OPTIONS


def shows_description(role: str, education_level: Optional[str]) -> bool:
    return normalize_role(role) == 'Student' and education_level == OTHER_OPTION


def institution_label(role: str, education_level: Optional[str]) -> str:
    if normalize_role(role) == 'Counselor':
        return 'Institution/Organization'
    return INSTITUTION_OPTIONS.get(education_level, ('Institution', None))[0]


def institution_placeholder(role: str, education_level: Optional[str]) -> str:
    if normalize_role(role) == 'Counselor':
        return 'Enter your school, organization, or institution name'
    return INSTITUTION_OPTIONS.get(education_level, (None, 'Enter institution name'))[1]


def display_note(role: str, education_level: Optional[str]) -> Optional[str]:
    role = normalize_role(role)
    if role == 'Parent':
        return PARENT_NOTE
    if role == 'Student':
        return STUDENT_NOTES.get(education_level)
    return None


def registration_fields(role: str, education_level: Optional[str] = None) -> Dict[str, Any]:
    """Everything the registration form needs to render for a selection"""
    role = normalize_role(role)
    student = role == 'Student'
    return {
        'role': role,
        'educationLevel': education_level,
        'fields': {
            'name': True,
            'email': True,
            'password': True,
            'educationLevel': shows_education_level(role),
            'institution': shows_institution(role, education_level),
            'description': shows_description(role, education_level),
            'graduationYear': student,
            'phone': True,
        },
        'institutionLabel': institution_label(role, education_level),
        'institutionPlaceholder': institution_placeholder(role, education_level),
        'note': display_note(role, education_level),
        'roleOptions': list(ROLE_OPTIONS),
        'educationLevelOptions': list(EDUCATION_LEVEL_OPTIONS) if student else [],
        'submitCycle': submit_cycle(),
    }


# Financial goal editor

MANUAL_TOTAL = 'manual-total'
DETAILED_BREAKDOWN = 'detailed-breakdown'
CALCULATION_METHODS = (MANUAL_TOTAL, DETAILED_BREAKDOWN)


def goal_form_fields(calculation_method: str = DETAILED_BREAKDOWN) -> Dict[str, Any]:
    if calculation_method not in CALCULATION_METHODS:
        raise ValueError(f"Unknown calculation method: {calculation_method}")
    manual = calculation_method == MANUAL_TOTAL
    return {
        'calculationMethod': calculation_method,
        'fields': {
            'targetAmount': manual,
            'currentAmount': manual,
            'expenses': not manual,
            'fundingSources': not manual,
            'totals': not manual,
        },
        'targetAmountDerived': not manual,
        'submitCycle': submit_cycle(),
    }


def _amount(item) -> float:
    value = item.get('amount') if isinstance(item, dict) else getattr(item, 'amount', 0)
    return float(value or 0)


def recalculate_totals(expenses: Iterable = (), funding_sources: Iterable = ()) -> Dict[str, float]:
    """
    Totals shown in the detailed-breakdown editor

    The target amount equals total expenses; the remaining gap may be
    negative when funding exceeds expenses.
    """
    total_expenses = sum(_amount(item) for item in expenses)
    total_funding = sum(_amount(item) for item in funding_sources)
    return {
        'totalExpenses': total_expenses,
        'totalFunding': total_funding,
        'remainingGap': total_expenses - total_funding,
        'targetAmount': total_expenses,
    }


# Quick-start goal templates

@dataclass(frozen=True)
class GoalTemplate:
    id: str
    title: str
    description: str
    typical_min: int
    typical_max: int
    category: str
    scope: str
    components: Tuple[str, ...]
    popular: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'typicalRange': {'min': self.typical_min, 'max': self.typical_max},
            'category': self.category,
            'recommendedScope': self.scope,
            'components': list(self.components),
            'popular': self.popular,
        }


GOAL_TEMPLATES = {
    template.id: template
    for template in (
        GoalTemplate('tuition-annual', 'Annual Tuition & Fees',
                     'Standard tuition, fees, and basic academic costs',
                     35000, 50000, 'academic-expenses', 'annual',
                     ('Core academic costs', 'Basic fees'), popular=True),
        GoalTemplate('room-board-annual', 'Room & Board',
                     'Housing, meals, and living expenses for academic year',
                     15000, 20000, 'living-expenses', 'annual',
                     ('Housing costs', 'Meal plans', 'Utilities'), popular=True),
        GoalTemplate('semester-expenses', 'Semester Expenses',
                     'Complete semester funding including all major costs',
                     25000, 35000, 'semester-funding', 'semester',
                     ('Tuition', 'Housing', 'Books', 'Personal expenses'), popular=True),
        GoalTemplate('books-supplies', 'Books & Supplies',
                     'Textbooks, materials, and academic supplies',
                     1200, 2000, 'academic-materials', 'annual',
                     ('Textbooks', 'Lab materials', 'Digital resources')),
        GoalTemplate('laptop-technology', 'Technology & Equipment',
                     'Laptop, software, and tech requirements',
                     2000, 3500, 'technology', 'degree-total',
                     ('Computer hardware', 'Software licenses', 'Accessories')),
        GoalTemplate('study-abroad', 'Study Abroad',
                     'International programs and travel costs',
                     15000, 25000, 'special-programs', 'semester',
                     ('Program fees', 'Travel', 'International housing')),
        GoalTemplate('emergency-fund', 'Emergency Fund',
                     'Safety net for unexpected expenses',
                     3000, 8000, 'emergency', 'annual',
                     ('Medical emergency', 'Family support', 'Academic crisis')),
    )
}


def goal_templates() -> List[Dict[str, Any]]:
    return [template.to_dict() for template in GOAL_TEMPLATES.values()]


def _plain(amount) -> str:
    """32000 for whole amounts, 32000.5 otherwise"""
    value = Decimal(str(amount))
    if value == value.to_integral_value():
        return str(int(value))
    return format(value.normalize(), 'f')


def template_insights(template_id: Optional[str], target_amount) -> Optional[Dict[str, Any]]:
    """
    Compare a goal's target with the typical range of the template it was
    created from

    Returns ``None`` when ``template_id`` is not a known template.
    """
    template = GOAL_TEMPLATES.get(template_id or '')
    if template is None:
        return None

    warnings = []
    if target_amount is not None:
        typical = f"({template.typical_min} - {template.typical_max})"
        if target_amount < template.typical_min:
            warnings.append(f"Target amount ({_plain(target_amount)}) is below typical range {typical}")
        elif target_amount > template.typical_max:
            warnings.append(f"Target amount ({_plain(target_amount)}) is above typical range {typical}")

    return {
        'template': template.id,
        'warnings': warnings,
        'suggestions': [f"Applied template: {template.title}"],
    }


# Submit cycle

class FormState(str, Enum):
    EDITING = 'editing'
    SUBMITTING = 'submitting'
    SUCCESS = 'success'
    ERROR = 'error'


# action -> (states it is allowed from, resulting state)
SUBMIT_TRANSITIONS = {
    'submit': ((FormState.EDITING,), FormState.SUBMITTING),
    'succeed': ((FormState.SUBMITTING,), FormState.SUCCESS),
    'fail': ((FormState.SUBMITTING,), FormState.ERROR),
    'edit': ((FormState.EDITING, FormState.SUCCESS, FormState.ERROR), FormState.EDITING),
}


def submit_cycle() -> Dict[str, Any]:
    """The submit cycle as served to the client alongside the form fields"""
    return {
        'initial': FormState.EDITING.value,
        'transitions': {
            action: {'from': [state.value for state in allowed], 'to': target.value}
            for action, (allowed, target) in SUBMIT_TRANSITIONS.items()
        },
    }


class InvalidTransition(Exception):
    def __init__(self, current: FormState, action: str):
        super().__init__(f"Cannot {action} while {current.value}")
        self.current = current
        self.action = action


@dataclass
class FormStateMachine:
    """Submit cycle for one form, with the error banner it displays"""
    state: FormState = FormState.EDITING
    error: Optional[str] = None

    def _apply(self, action: str):
        allowed, target = SUBMIT_TRANSITIONS[action]
        if self.state not in allowed:
            raise InvalidTransition(self.state, action)
        self.state = target

    @property
    def is_pending(self) -> bool:
        return self.state == FormState.SUBMITTING

    def submit(self):
        self._apply('submit')
        self.error = None

    def succeed(self):
        self._apply('succeed')

    def fail(self, message: str):
        self._apply('fail')
        self.error = message

    def edit(self):
        self._apply('edit')
        self.error = None

    def to_dict(self) -> Dict[str, Any]:
        return {'state': self.state.value, 'error': self.error}
