# services/seed_data.py
"""
Demo accounts and financial goals

Every expense and funding source carries the breakdown category it is
expected to land in; the analytics tests use these annotations as a
regression fixture for the keyword classifiers.
"""

import logging
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional

from core.database_models import (
    db, Application, ApplicationStatus, EducationLevel, FinancialGoal, GoalExpense,
    GoalFundingSource, GoalStatus, GoalType, Priority, ResidencyStatus, Scholarship,
    SchoolType, User, UserRole, utcnow
)
from core.security_manager import security_manager

logger = logging.getLogger(__name__)

DEMO_PASSWORD = 'Scholar#2024'


def _expense(name, amount, frequency, category):
    return {'name': name, 'amount': amount, 'frequency': frequency, 'category': category}


def _source(name, source_type, amount, probability, status, category, confirmed='0', renewable=True):
    return {
        'source_name': name,
        'source_type': source_type,
        'amount': amount,
        'probability_percentage': probability,
        'application_status': status,
        'confirmed_amount': confirmed,
        'renewable': renewable,
        'category': category,
    }


def demo_goals(today: Optional[date] = None) -> Dict[str, List[Dict[str, Any]]]:
    """Goal definitions per demo account, with deadlines relative to ``today``"""
    today = today or utcnow().date()
    year = today.year

    return {
        'user1@stp.com': [
            {
                'title': "Bachelor's Degree in Computer Science",
                'description': 'Complete undergraduate degree in Computer Science with focus on AI and machine learning',
                'goal_type': GoalType.EDUCATION,
                'target_amount': '85000.00',
                'current_amount': '12500.00',
                'deadline': datetime(year + 4, 6, 15),
                'priority': Priority.HIGH,
                'education_level': 'undergraduate',
                'school_type': SchoolType.PUBLIC,
                'program_type': 'Computer Science',
                'credit_hours_per_term': 15,
                'terms_per_year': 2,
                'program_duration_years': '4.0',
                'target_state': 'California',
                'residency_status': ResidencyStatus.IN_STATE,
                'estimated_efc': 8500,
                'pell_eligible': True,
                'state_aid_eligible': True,
                'family_income_range': '$40,000-$60,000',
                'planned_start_date': date(2024, 8, 15),
                'planned_end_date': date(2028, 5, 15),
                'academic_year': '2024-2025',
                'expenses': [
                    _expense('Tuition (In-State)', '14000.00', 'annual', 'tuition'),
                    _expense('Room & Board', '16000.00', 'annual', 'roomAndBoard'),
                    _expense('Books & Technology', '2500.00', 'annual', 'books'),
                    _expense('Transportation', '1800.00', 'annual', 'transportation'),
                    _expense('Personal Expenses', '3200.00', 'annual', 'personal'),
                ],
                'funding_sources': [
                    _source('Pell Grant', 'federal_grant', '7000.00', 95, 'approved', 'federalAid', confirmed='7000.00'),
                    _source('Cal Grant A', 'state_grant', '12500.00', 90, 'pending', 'stateAid'),
                    _source('Part-time Work Study', 'work_study', '6000.00', 80, 'not_applied', 'workStudy'),
                    _source('Family Contribution', 'family', '8500.00', 100, 'confirmed', 'familyContribution',
                            confirmed='8500.00'),
                ],
            },
            {
                'title': 'Study Abroad Program - Japan',
                'description': 'Semester exchange program in Tokyo focusing on AI research',
                'goal_type': GoalType.EDUCATION,
                'target_amount': '18000.00',
                'current_amount': '3500.00',
                'deadline': datetime(year + 2, 9, 1),
                'priority': Priority.MEDIUM,
                'education_level': 'undergraduate',
                'school_type': SchoolType.HYBRID,
                'program_type': 'Study Abroad',
                'credit_hours_per_term': 12,
                'terms_per_year': 1,
                'program_duration_years': '0.5',
                'target_state': 'International',
                'target_country': 'Japan',
                'residency_status': ResidencyStatus.INTERNATIONAL,
                'estimated_efc': 8500,
                'family_income_range': '$40,000-$60,000',
                'planned_start_date': date(2026, 1, 15),
                'planned_end_date': date(2026, 6, 15),
                'academic_year': '2025-2026',
                'expenses': [
                    _expense('Program Fees', '8500.00', 'one_time', 'fees'),
                    _expense('Airfare', '1800.00', 'one_time', 'other'),
                    _expense('Housing in Tokyo', '5200.00', 'one_time', 'roomAndBoard'),
                    _expense('Living Expenses', '2500.00', 'one_time', 'other'),
                ],
                'funding_sources': [
                    _source('Study Abroad Scholarship', 'scholarship', '5000.00', 60, 'not_applied', 'scholarships',
                            renewable=False),
                    _source('Family Support', 'family', '8000.00', 85, 'discussed', 'familyContribution',
                            renewable=False),
                    _source('Personal Savings', 'savings', '5000.00', 100, 'confirmed', 'other',
                            confirmed='3500.00', renewable=False),
                ],
            },
        ],
        'user2@stp.com': [
            {
                'title': "Master's Degree in Data Science",
                'description': 'Graduate degree in Data Science with specialization in healthcare analytics',
                'goal_type': GoalType.EDUCATION,
                'target_amount': '72000.00',
                'current_amount': '18000.00',
                'deadline': datetime(year + 2, 6, 15),
                'priority': Priority.HIGH,
                'education_level': 'graduate',
                'school_type': SchoolType.PRIVATE,
                'program_type': 'Data Science',
                'credit_hours_per_term': 12,
                'terms_per_year': 2,
                'program_duration_years': '2.0',
                'target_state': 'New York',
                'residency_status': ResidencyStatus.OUT_OF_STATE,
                'estimated_efc': 25000,
                'family_income_range': '$80,000-$100,000',
                'planned_start_date': date(2024, 8, 20),
                'planned_end_date': date(2026, 5, 15),
                'academic_year': '2024-2025',
                'expenses': [
                    _expense('Graduate Tuition', '28000.00', 'annual', 'tuition'),
                    _expense('NYC Housing', '20000.00', 'annual', 'roomAndBoard'),
                    _expense('Research Materials & Software', '1500.00', 'annual', 'other'),
                    _expense('Transportation (Subway)', '1400.00', 'annual', 'transportation'),
                    _expense('Conference & Networking', '3100.00', 'annual', 'other'),
                ],
                'funding_sources': [
                    _source('Graduate Research Assistantship', 'assistantship', '18000.00', 75, 'pending', 'other'),
                    _source('Healthcare Analytics Fellowship', 'fellowship', '15000.00', 40, 'applied', 'other'),
                    _source('Graduate Student Loans', 'federal_loan', '25000.00', 95, 'approved', 'federalAid'),
                    _source('Family Contribution', 'family', '14000.00', 100, 'confirmed', 'familyContribution',
                            confirmed='14000.00'),
                ],
            },
            {
                'title': 'Professional Development Fund',
                'description': 'Certifications, conferences, and skill development for career advancement',
                'goal_type': GoalType.CAREER,
                'target_amount': '8500.00',
                'current_amount': '2200.00',
                'deadline': datetime(year + 2, 1, 31),
                'priority': Priority.MEDIUM,
                'education_level': 'professional',
                'school_type': SchoolType.ONLINE,
                'program_type': 'Professional Development',
                'credit_hours_per_term': 0,
                'terms_per_year': 1,
                'program_duration_years': '1.0',
                'target_state': 'New York',
                'residency_status': ResidencyStatus.IN_STATE,
                'estimated_efc': 25000,
                'family_income_range': '$80,000-$100,000',
                'planned_start_date': date(2024, 1, 1),
                'planned_end_date': date(2024, 12, 31),
                'academic_year': '2024',
                'expenses': [
                    _expense('AWS Certification Path', '2500.00', 'one_time', 'other'),
                    _expense('Python for Data Science Bootcamp', '1800.00', 'one_time', 'other'),
                    _expense('PyData Conference NYC', '1200.00', 'annual', 'other'),
                    _expense("O'Reilly Learning Platform", '600.00', 'annual', 'other'),
                    _expense('Networking Events & Meetups', '800.00', 'annual', 'other'),
                ],
                'funding_sources': [
                    _source('Employer Professional Development Fund', 'employer', '3000.00', 80, 'discussed', 'other'),
                    _source('Personal Investment', 'savings', '5500.00', 100, 'confirmed', 'other',
                            confirmed='2200.00', renewable=False),
                ],
            },
        ],
        'user3@stp.com': [
            {
                'title': 'Community College Transfer Program',
                'description': 'Complete associate degree and transfer to 4-year university for engineering',
                'goal_type': GoalType.EDUCATION,
                'target_amount': '35000.00',
                'current_amount': '8500.00',
                'deadline': datetime(year + 3, 6, 15),
                'priority': Priority.HIGH,
                'education_level': 'undergraduate',
                'school_type': SchoolType.COMMUNITY_COLLEGE,
                'program_type': 'Engineering Transfer',
                'credit_hours_per_term': 14,
                'terms_per_year': 2,
                'program_duration_years': '3.0',
                'target_state': 'Texas',
                'residency_status': ResidencyStatus.IN_STATE,
                'estimated_efc': 3500,
                'pell_eligible': True,
                'state_aid_eligible': True,
                'family_income_range': '$25,000-$40,000',
                'planned_start_date': date(2024, 8, 26),
                'planned_end_date': date(2027, 5, 15),
                'academic_year': '2024-2025',
                'expenses': [
                    _expense('Community College Tuition', '4200.00', 'annual', 'tuition'),
                    _expense('University Transfer Tuition (2 years)', '22000.00', 'one_time', 'tuition'),
                    _expense('Books & Engineering Supplies', '3500.00', 'annual', 'books'),
                    _expense('Transportation (Commuter)', '2400.00', 'annual', 'transportation'),
                    _expense('Lab Fees & Equipment', '1800.00', 'annual', 'fees'),
                ],
                'funding_sources': [
                    _source('Maximum Pell Grant', 'federal_grant', '7400.00', 100, 'approved', 'federalAid',
                            confirmed='7400.00'),
                    _source('Texas Grant Program', 'state_grant', '4500.00', 85, 'pending', 'stateAid'),
                    _source('Work Study Program', 'work_study', '4500.00', 90, 'approved', 'workStudy',
                            confirmed='1500.00'),
                    _source('Family Savings', 'family', '3500.00', 100, 'confirmed', 'familyContribution',
                            confirmed='3500.00', renewable=False),
                    _source('Engineering Scholarship', 'scholarship', '8000.00', 45, 'applied', 'scholarships'),
                ],
            },
            {
                'title': 'Emergency Fund for Education',
                'description': 'Safety net for unexpected educational expenses and living costs',
                'goal_type': GoalType.EMERGENCY,
                'target_amount': '12000.00',
                'current_amount': '4200.00',
                'deadline': datetime(year + 1, 7, 1),
                'priority': Priority.HIGH,
                'education_level': 'undergraduate',
                'school_type': SchoolType.COMMUNITY_COLLEGE,
                'program_type': 'Financial Security',
                'credit_hours_per_term': 0,
                'terms_per_year': 1,
                'program_duration_years': '1.0',
                'target_state': 'Texas',
                'residency_status': ResidencyStatus.IN_STATE,
                'estimated_efc': 3500,
                'pell_eligible': True,
                'state_aid_eligible': True,
                'family_income_range': '$25,000-$40,000',
                'planned_start_date': date(2024, 1, 1),
                'planned_end_date': date(2025, 6, 1),
                'academic_year': '2024-2025',
                'expenses': [
                    _expense('Emergency Tuition Coverage', '4000.00', 'emergency', 'tuition'),
                    _expense('Unexpected Living Expenses', '3500.00', 'emergency', 'other'),
                    _expense('Medical/Health Emergencies', '2500.00', 'emergency', 'other'),
                    _expense('Technology Replacement Fund', '2000.00', 'emergency', 'fees'),
                ],
                'funding_sources': [
                    _source('Part-time Job Savings', 'employment', '6000.00', 85, 'active', 'other',
                            confirmed='2400.00'),
                    _source('Tax Refund', 'government', '2800.00', 95, 'expected', 'other'),
                    _source('Family Emergency Support', 'family', '3200.00', 70, 'discussed', 'familyContribution',
                            renewable=False),
                ],
            },
        ],
    }


DEMO_USERS = {
    'user1@stp.com': {'name': 'Alex Rivera', 'school': 'UC Berkeley', 'major': 'Computer Science',
                      'graduation_year': 2028, 'education_level': EducationLevel.UNDERGRADUATE,
                      'educational_status': 'currently_enrolled'},
    'user2@stp.com': {'name': 'Priya Shah', 'school': 'Columbia University', 'major': 'Data Science',
                      'graduation_year': 2026, 'education_level': EducationLevel.GRADUATE,
                      'educational_status': 'accepted_planning'},
    'user3@stp.com': {'name': 'Jordan Lee', 'school': 'Austin Community College', 'major': 'Engineering',
                      'graduation_year': 2027, 'education_level': EducationLevel.HIGH_SCHOOL,
                      'educational_status': 'community_college'},
}

DEMO_SCHOLARSHIPS = [
    # (title, amount, days until deadline, application status, award)
    ('STEM Innovation Grant', '5000.00', 21, ApplicationStatus.SUBMITTED, None),
    ('Community Service Award', '2500.00', 45, ApplicationStatus.DRAFT, None),
    ('Merit Excellence Scholarship', '10000.00', -30, ApplicationStatus.ACCEPTED, '7500.00'),
]


def iter_fixture_expenses(goals_by_user=None):
    """Yield (name, expected category) for every seeded expense"""
    for goals in (goals_by_user or demo_goals()).values():
        for goal in goals:
            for expense in goal['expenses']:
                yield expense['name'], expense['category']


def iter_fixture_funding(goals_by_user=None):
    """Yield (source type, expected category) for every seeded funding source"""
    for goals in (goals_by_user or demo_goals()).values():
        for goal in goals:
            for source in goal['funding_sources']:
                yield source['source_type'], source['category']


def _build_goal(user_id: int, definition: Dict[str, Any]) -> FinancialGoal:
    columns = {
        key: value for key, value in definition.items()
        if key not in ('expenses', 'funding_sources')
    }
    for key in ('target_amount', 'current_amount', 'program_duration_years'):
        columns[key] = Decimal(columns[key])

    goal = FinancialGoal(user_id=user_id, status=GoalStatus.ACTIVE, **columns)
    goal.expenses = [
        GoalExpense(name=e['name'], amount=Decimal(e['amount']), is_estimated=True, frequency=e['frequency'])
        for e in definition['expenses']
    ]
    goal.funding_sources = [
        GoalFundingSource(
            source_name=s['source_name'],
            source_type=s['source_type'],
            amount=Decimal(s['amount']),
            probability_percentage=s['probability_percentage'],
            application_status=s['application_status'],
            confirmed_amount=Decimal(s['confirmed_amount']),
            renewable=s['renewable'],
        )
        for s in definition['funding_sources']
    ]
    return goal


def seed_demo_data(password: str = DEMO_PASSWORD) -> Dict[str, int]:
    """
    Insert the demo accounts with their goals, scholarships and applications

    Accounts that already exist are left untouched. Returns counts of
    inserted rows.
    """
    now = utcnow()
    counts = {'users': 0, 'goals': 0, 'scholarships': 0}

    try:
        for email, goals in demo_goals(now.date()).items():
            if db.session.query(User).filter(User.email == email).first() is not None:
                logger.info(f"Demo account {email} already present, skipping")
                continue

            user = User(
                email=email,
                password_hash=security_manager.make_password_hash(password),
                role=UserRole.STUDENT,
                email_verified=True,
                **DEMO_USERS[email],
            )
            db.session.add(user)
            db.session.flush()
            counts['users'] += 1

            for definition in goals:
                db.session.add(_build_goal(user.id, definition))
                counts['goals'] += 1

            for title, amount, days, status, award in DEMO_SCHOLARSHIPS:
                scholarship = Scholarship(
                    title=title,
                    description=f"{title} for {DEMO_USERS[email]['major']} students",
                    amount=Decimal(amount),
                    provider='Scholarship Tracker Demo',
                    eligibility_requirements='Open to enrolled students',
                    application_deadline=now + timedelta(days=days),
                    education_level=user.education_level,
                    created_by=user.id,
                )
                scholarship.applications.append(Application(
                    user=user,
                    status=status,
                    submitted_at=now if status != ApplicationStatus.DRAFT else None,
                    award_amount=Decimal(award) if award else None,
                ))
                db.session.add(scholarship)
                counts['scholarships'] += 1

        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info(f"Demo data seeded: {counts}")
    return counts
