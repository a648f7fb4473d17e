from datetime import datetime

import pytest

from services.financial_analytics import (
    CRITICAL_ACTIONS,
    ExpenseItem,
    FundingItem,
    GoalSnapshot,
    ScholarshipStats,
    calculate_metrics,
    classify_expense,
    classify_funding,
    completion_probability,
    risk_level_for,
)

NOW = datetime(2025, 3, 1, 12, 0, 0)


def _stats(won=0, potential=0, total=0, **applications):
    return ScholarshipStats.from_dict({
        'funding': {'won': won, 'potential': potential},
        'applications': dict({'total': total}, **applications),
    })


def test_single_goal_scenario_gap_progress_and_risk() -> None:
    goal = GoalSnapshot(title='Freshman Year', target_amount=10000, current_amount=2000)
    metrics = calculate_metrics([goal], _stats(won=2000, total=1, submitted=1), now=NOW)

    assert metrics.total_target_amount == 10000
    assert metrics.total_current_amount == 2000
    assert metrics.total_funding_gap == 8000
    assert metrics.progress_percentage == pytest.approx(20)
    assert metrics.risk_level == 'critical'


def test_funding_gap_is_never_negative() -> None:
    goal = GoalSnapshot(title='Community College', target_amount=5000)
    metrics = calculate_metrics([goal], _stats(won=12000, total=2, accepted=2), now=NOW)

    assert metrics.total_funding_gap == 0
    assert metrics.progress_percentage == pytest.approx(240)
    assert metrics.risk_level == 'low'


def test_progress_is_zero_without_targets() -> None:
    metrics = calculate_metrics([], _stats(won=3000), now=NOW)

    assert metrics.total_target_amount == 0
    assert metrics.progress_percentage == 0
    assert metrics.total_funding_gap == 0


@pytest.mark.parametrize(
    'progress, expected',
    [
        (95, 'low'),
        (90, 'low'),
        (75, 'medium'),
        (70, 'medium'),
        (50, 'high'),
        (40, 'high'),
        (39.9, 'critical'),
        (10, 'critical'),
        (0, 'critical'),
    ],
)
def test_risk_level_thresholds(progress, expected) -> None:
    assert risk_level_for(progress) == expected


def test_completion_probability_is_clamped_to_100() -> None:
    stats = _stats(won=1_000_000, potential=1_000_000, total=100)
    metrics = calculate_metrics([GoalSnapshot(title='Degree', target_amount=1000)], stats, now=NOW)

    assert metrics.completion_probability == 100


def test_completion_probability_weights() -> None:
    stats = _stats(won=10000, potential=20000, total=3)
    # 50 base + 10 won + 10 potential + 6 activity
    assert completion_probability([], stats, NOW) == pytest.approx(76)


def test_completion_probability_deadline_penalty() -> None:
    overdue = GoalSnapshot(title='Old Goal', target_amount=1000, deadline=datetime(2024, 1, 1))
    assert completion_probability([overdue], _stats(), NOW) == 40
    assert 0 <= completion_probability([overdue], _stats(), NOW) <= 100


def test_current_amount_counts_won_funding_and_family_sources() -> None:
    goal = GoalSnapshot(
        title='Graduate School',
        target_amount=40000,
        funding_sources=[
            FundingItem('Family Contribution', 'family', 6000),
            FundingItem('Family Support', 'savings', 3000),
            FundingItem('Parent PLUS Loan', 'parent_loan', 5000),
            FundingItem('Pell Grant', 'federal_grant', 7000),
        ],
    )
    metrics = calculate_metrics([goal], _stats(won=2500), now=NOW)

    assert metrics.total_current_amount == 2500 + 6000 + 3000
    assert metrics.total_funding_gap == 40000 - 11500


def test_only_active_goals_are_aggregated() -> None:
    goals = [
        GoalSnapshot(title='Active', target_amount=10000),
        GoalSnapshot(title='Done', target_amount=50000, status='completed'),
        GoalSnapshot(title='On Hold', target_amount=25000, status='paused', deadline=datetime(2020, 1, 1)),
    ]
    metrics = calculate_metrics(goals, _stats(), now=NOW)

    assert metrics.total_target_amount == 10000
    assert not any('On Hold' in warning for warning in metrics.warning_flags)


def test_expense_and_funding_breakdowns() -> None:
    goal = GoalSnapshot(
        title='Sophomore Year',
        target_amount=30000,
        expenses=[
            ExpenseItem('Tuition', 12000),
            ExpenseItem('Dorm Housing Fee', 8000),
            ExpenseItem('Gas Reimbursement', 600),
            ExpenseItem('Miscellaneous', 400),
        ],
        funding_sources=[
            FundingItem('Merit Award', 'scholarship', 4000),
            FundingItem('Pell Grant', 'federal_pell_grant', 6000),
            FundingItem('Campus Job', 'work_study_job', 3000),
        ],
    )
    metrics = calculate_metrics([goal], _stats(won=1500), now=NOW)

    assert metrics.expense_breakdown == {
        'tuition': 12000,
        'roomAndBoard': 8000,
        'books': 0,
        'transportation': 600,
        'personal': 0,
        'fees': 0,
        'other': 400,
    }
    assert metrics.funding_breakdown == {
        'scholarships': 1500 + 4000,
        'federalAid': 6000,
        'stateAid': 0,
        'familyContribution': 0,
        'loans': 0,
        'workStudy': 3000,
        'other': 0,
    }


@pytest.mark.parametrize(
    'name, category',
    [
        ('Dorm Housing Fee', 'roomAndBoard'),
        ('Gas Reimbursement', 'transportation'),
        ('Academic Enrichment', 'tuition'),
        ('Textbooks', 'books'),
        ('Food Plan', 'personal'),
        ('Student Activity Fee', 'fees'),
        ('Miscellaneous', 'other'),
        ('', 'other'),
        (None, 'other'),
    ],
)
def test_classify_expense(name, category) -> None:
    assert classify_expense(name) == category


@pytest.mark.parametrize(
    'source_type, category',
    [
        ('federal_pell_grant', 'federalAid'),
        ('work_study_job', 'workStudy'),
        ('grant_private', 'scholarships'),
        ('cal_grant', 'stateAid'),
        ('Parent_Contribution', 'familyContribution'),
        ('private_loan', 'loans'),
        ('savings', 'other'),
    ],
)
def test_classify_funding(source_type, category) -> None:
    assert classify_funding(source_type) == category


def test_first_matching_category_wins() -> None:
    # "state" and "loan" both match; stateAid is checked first
    assert classify_funding('state_loan') == 'stateAid'
    # "book" beats "fee"
    assert classify_expense('Book Fee') == 'books'


def test_one_warning_per_past_deadline_goal() -> None:
    goals = [
        GoalSnapshot(title='Summer Program', target_amount=4000, deadline=datetime(2024, 6, 1)),
        GoalSnapshot(title='Senior Year', target_amount=9000, deadline=datetime(2026, 6, 1)),
    ]
    metrics = calculate_metrics(goals, _stats(), now=NOW)

    deadline_warnings = [w for w in metrics.warning_flags if 'has passed its deadline' in w]
    assert deadline_warnings == ['Goal "Summer Program" has passed its deadline']


def test_large_gap_and_no_awards_warnings() -> None:
    goal = GoalSnapshot(title='Medical School', target_amount=80000)
    metrics = calculate_metrics([goal], _stats(total=4, submitted=4), now=NOW)

    assert 'Large funding gap may require additional planning' in metrics.warning_flags
    assert 'No scholarships awarded yet - review application strategy' in metrics.warning_flags


def test_recommended_actions_for_a_new_account() -> None:
    metrics = calculate_metrics([], _stats(), now=NOW)

    assert metrics.risk_level == 'critical'
    assert metrics.recommended_actions == list(CRITICAL_ACTIONS) + [
        'Apply to more scholarships - aim for at least 10 applications',
        'Research higher-value scholarship opportunities',
        'Create detailed financial goals to track progress',
    ]
    assert metrics.warning_flags == []


def test_recommended_actions_for_a_well_funded_student() -> None:
    goal = GoalSnapshot(title='Degree', target_amount=20000)
    metrics = calculate_metrics([goal], _stats(won=19000, potential=25000, total=8), now=NOW)

    assert metrics.risk_level == 'low'
    assert metrics.recommended_actions == []


def test_stats_from_dict_defaults_missing_values() -> None:
    stats = ScholarshipStats.from_dict(None)
    assert (stats.won, stats.potential, stats.total) == (0, 0, 0)

    stats = ScholarshipStats.from_dict({'funding': {'won': None}, 'applications': {'rejected': 2}})
    assert stats.won == 0
    assert stats.rejected == 2


def test_metrics_to_dict_uses_camel_case_keys() -> None:
    data = calculate_metrics([], _stats(won=500, potential=1000, total=2), now=NOW).to_dict()

    assert data['scholarshipAmountWon'] == 500
    assert data['scholarshipAmountPotential'] == 1000
    assert data['scholarshipApplications'] == 2
    assert set(data) >= {
        'totalTargetAmount', 'totalCurrentAmount', 'totalFundingGap', 'progressPercentage',
        'expenseBreakdown', 'fundingBreakdown', 'riskLevel', 'completionProbability',
        'recommendedActions', 'warningFlags',
    }
