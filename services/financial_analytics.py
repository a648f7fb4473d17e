# services/financial_analytics.py
"""
Financial Analytics Service
Aggregates a student's active financial goals and scholarship results into a
single metrics snapshot for the dashboard: totals, category breakdowns, a
coarse risk level, a completion estimate, and rule-based advice.

Everything here is pure computation; callers load the rows.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from core.database_models import GoalStatus, utcnow

logger = logging.getLogger(__name__)


# Ordered (category, keywords) tables; the first category with a keyword
# contained in the lowercased text wins.
EXPENSE_CATEGORIES: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ('tuition', ('tuition', 'academic')),
    ('roomAndBoard', ('room', 'board', 'housing', 'dorm')),
    ('books', ('book', 'textbook', 'supply')),
    ('transportation', ('transport', 'travel', 'gas', 'car')),
    ('personal', ('personal', 'entertainment', 'food')),
    ('fees', ('fee', 'technology', 'activity')),
)

FUNDING_CATEGORIES: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ('scholarships', ('scholarship', 'grant_private')),
    ('federalAid', ('federal', 'pell', 'stafford')),
    ('stateAid', ('state', 'cal_grant')),
    ('familyContribution', ('family', 'parent', 'personal')),
    ('loans', ('loan',)),
    ('workStudy', ('work', 'job')),
)

OTHER = 'other'

LARGE_GAP_THRESHOLD = 50000
MIN_APPLICATIONS = 5
HIGH_VALUE_POTENTIAL = 20000

CRITICAL_ACTIONS = (
    'Apply for emergency financial aid',
    'Consider reducing expenses or changing plans',
    'Explore additional funding sources immediately',
)


def _classify(text: Optional[str], table) -> str:
    lowered = (text or '').lower()
    for category, keywords in table:
        if any(keyword in lowered for keyword in keywords):
            return category
    return OTHER


def classify_expense(name: Optional[str]) -> str:
    """Map an expense line item name to its breakdown category"""
    return _classify(name, EXPENSE_CATEGORIES)


def classify_funding(source_type: Optional[str]) -> str:
    """Map a funding source type to its breakdown category"""
    return _classify(source_type, FUNDING_CATEGORIES)


def empty_expense_breakdown() -> Dict[str, float]:
    return {category: 0.0 for category, _ in EXPENSE_CATEGORIES} | {OTHER: 0.0}


def empty_funding_breakdown() -> Dict[str, float]:
    return {category: 0.0 for category, _ in FUNDING_CATEGORIES} | {OTHER: 0.0}


@dataclass
class ExpenseItem:
    name: str
    amount: float = 0.0


@dataclass
class FundingItem:
    source_name: str
    source_type: str
    amount: float = 0.0

    @property
    def is_family(self) -> bool:
        return self.source_type.lower() == 'family' or 'family' in self.source_name.lower()


@dataclass
class GoalSnapshot:
    """Read-only view of a financial goal used by the aggregator"""
    title: str
    target_amount: float = 0.0
    current_amount: float = 0.0
    status: str = GoalStatus.ACTIVE.value
    deadline: Optional[datetime] = None
    expenses: List[ExpenseItem] = field(default_factory=list)
    funding_sources: List[FundingItem] = field(default_factory=list)

    @property
    def is_active(self) -> bool:
        return self.status == GoalStatus.ACTIVE.value

    def is_past_deadline(self, now: datetime) -> bool:
        return self.deadline is not None and _naive(self.deadline) < now

    @classmethod
    def from_model(cls, goal) -> 'GoalSnapshot':
        """Build a snapshot from a FinancialGoal row and its loaded children"""
        status = goal.status.value if hasattr(goal.status, 'value') else goal.status
        return cls(
            title=goal.title,
            target_amount=float(goal.target_amount or 0),
            current_amount=float(goal.current_amount or 0),
            status=status,
            deadline=goal.deadline,
            expenses=[ExpenseItem(e.name, float(e.amount or 0)) for e in goal.expenses],
            funding_sources=[
                FundingItem(s.source_name, s.source_type, float(s.amount or 0))
                for s in goal.funding_sources
            ],
        )


@dataclass
class ScholarshipStats:
    """Scholarship results feeding the aggregator"""
    won: float = 0.0
    potential: float = 0.0
    total: int = 0
    submitted: int = 0
    accepted: int = 0
    rejected: int = 0

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'ScholarshipStats':
        """
        Accepts the dashboard shape
        ``{"funding": {"won", "potential"}, "applications": {"total", ...}}``
        """
        data = data or {}
        funding = data.get('funding') or {}
        applications = data.get('applications') or {}
        return cls(
            won=float(funding.get('won') or 0),
            potential=float(funding.get('potential') or 0),
            total=int(applications.get('total') or 0),
            submitted=int(applications.get('submitted') or 0),
            accepted=int(applications.get('accepted') or 0),
            rejected=int(applications.get('rejected') or 0),
        )


@dataclass
class FinancialMetrics:
    total_target_amount: float
    total_current_amount: float
    total_funding_gap: float
    progress_percentage: float
    scholarship_amount_won: float
    scholarship_amount_potential: float
    scholarship_applications: int
    expense_breakdown: Dict[str, float]
    funding_breakdown: Dict[str, float]
    risk_level: str
    completion_probability: float
    recommended_actions: List[str] = field(default_factory=list)
    warning_flags: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'totalTargetAmount': self.total_target_amount,
            'totalCurrentAmount': self.total_current_amount,
            'totalFundingGap': self.total_funding_gap,
            'progressPercentage': self.progress_percentage,
            'scholarshipAmountWon': self.scholarship_amount_won,
            'scholarshipAmountPotential': self.scholarship_amount_potential,
            'scholarshipApplications': self.scholarship_applications,
            'expenseBreakdown': dict(self.expense_breakdown),
            'fundingBreakdown': dict(self.funding_breakdown),
            'riskLevel': self.risk_level,
            'completionProbability': self.completion_probability,
            'recommendedActions': list(self.recommended_actions),
            'warningFlags': list(self.warning_flags),
        }


def _naive(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def risk_level_for(progress_percentage: float) -> str:
    if progress_percentage >= 90:
        return 'low'
    if progress_percentage >= 70:
        return 'medium'
    if progress_percentage >= 40:
        return 'high'
    return 'critical'


def family_contribution(goals: Iterable[GoalSnapshot]) -> float:
    return sum(
        source.amount
        for goal in goals
        for source in goal.funding_sources
        if source.is_family
    )


def expense_breakdown(goals: Iterable[GoalSnapshot]) -> Dict[str, float]:
    breakdown = empty_expense_breakdown()
    for goal in goals:
        for expense in goal.expenses:
            breakdown[classify_expense(expense.name)] += expense.amount
    return breakdown


def funding_breakdown(goals: Iterable[GoalSnapshot], stats: ScholarshipStats) -> Dict[str, float]:
    breakdown = empty_funding_breakdown()
    breakdown['scholarships'] = stats.won
    for goal in goals:
        for source in goal.funding_sources:
            breakdown[classify_funding(source.source_type)] += source.amount
    return breakdown


def completion_probability(goals: Sequence[GoalSnapshot], stats: ScholarshipStats, now: datetime) -> float:
    base_score = 50
    secured = min(30, (stats.won / 10000) * 10)
    potential = min(20, (stats.potential / 20000) * 10)
    activity = min(15, stats.total * 2)
    penalty = -10 if any(goal.is_past_deadline(now) for goal in goals) else 0
    return max(0, min(100, base_score + secured + potential + activity + penalty))


def recommended_actions(goals: Sequence[GoalSnapshot], stats: ScholarshipStats, risk_level: str) -> List[str]:
    actions = []
    if risk_level == 'critical':
        actions.extend(CRITICAL_ACTIONS)
    if stats.total < MIN_APPLICATIONS:
        actions.append('Apply to more scholarships - aim for at least 10 applications')
    if stats.potential < HIGH_VALUE_POTENTIAL:
        actions.append('Research higher-value scholarship opportunities')
    if not goals:
        actions.append('Create detailed financial goals to track progress')
    return actions


def warning_flags(goals: Sequence[GoalSnapshot], stats: ScholarshipStats, now: datetime) -> List[str]:
    warnings = []
    total_target = sum(goal.target_amount for goal in goals)
    if total_target - stats.won > LARGE_GAP_THRESHOLD:
        warnings.append('Large funding gap may require additional planning')
    if stats.total > 0 and stats.won == 0:
        warnings.append('No scholarships awarded yet - review application strategy')
    for goal in goals:
        if goal.is_past_deadline(now):
            warnings.append(f'Goal "{goal.title}" has passed its deadline')
    return warnings


def calculate_metrics(goals: Iterable[GoalSnapshot], stats: ScholarshipStats,
                      now: Optional[datetime] = None) -> FinancialMetrics:
    """
    Calculate the financial metrics snapshot

    Args:
        goals: Goal snapshots in any status; only active goals participate
        stats: Scholarship results for the same user
        now: Reference time for deadline checks (naive UTC), defaults to now

    Returns:
        FinancialMetrics
    """
    now = _naive(now) if now is not None else utcnow()
    active = [goal for goal in goals if goal.is_active]

    total_target = sum(goal.target_amount for goal in active)
    total_current = stats.won + family_contribution(active)
    gap = max(0, total_target - total_current)
    progress = (total_current / total_target) * 100 if total_target > 0 else 0
    risk = risk_level_for(progress)

    metrics = FinancialMetrics(
        total_target_amount=total_target,
        total_current_amount=total_current,
        total_funding_gap=gap,
        progress_percentage=progress,
        scholarship_amount_won=stats.won,
        scholarship_amount_potential=stats.potential,
        scholarship_applications=stats.total,
        expense_breakdown=expense_breakdown(active),
        funding_breakdown=funding_breakdown(active, stats),
        risk_level=risk,
        completion_probability=completion_probability(active, stats, now),
        recommended_actions=recommended_actions(active, stats, risk),
        warning_flags=warning_flags(active, stats, now),
    )

    logger.debug(f"Financial metrics calculated: goals={len(active)} risk={risk} progress={progress:.1f}")
    return metrics
