# services/goals.py
"""
Financial goal persistence

A goal and its expense and funding-source children are always written in a
single transaction: either every row lands or none does.
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import selectinload

from core.database_models import (
    db, FinancialGoal, GoalExpense, GoalFundingSource, GoalStatus, GoalType
)
from core.errors import NotFoundError, ValidationFailed
from core.schemas import ExpenseIn, FundingSourceIn, GoalCreate, GoalUpdate
from core.security_manager import security_manager

logger = logging.getLogger(__name__)

CHILD_FIELDS = ('expenses', 'funding_sources')
REQUIRED_COLUMNS = ('title', 'target_amount', 'goal_type', 'priority', 'status', 'calculation_method')
TEXT_COLUMNS = ('title', 'description')


def _goal_columns(data, partial: bool) -> Dict[str, Any]:
    # Creates leave unset fields to the column defaults
    if partial:
        values = data.model_dump(exclude=set(CHILD_FIELDS), exclude_unset=True)
    else:
        values = data.model_dump(exclude=set(CHILD_FIELDS), exclude_none=True)
    for column in TEXT_COLUMNS:
        if values.get(column) is not None:
            values[column] = security_manager.sanitize_text(values[column])
    # Explicit nulls cannot clear NOT NULL columns
    for column in REQUIRED_COLUMNS:
        if column in values and values[column] is None:
            del values[column]
    if values.get('current_amount') is None:
        values.pop('current_amount', None)
    return values


def _expense(item: ExpenseIn) -> GoalExpense:
    return GoalExpense(
        name=security_manager.sanitize_text(item.name),
        amount=item.amount,
        is_estimated=item.is_estimated,
        frequency=item.frequency,
    )


def _funding_source(item: FundingSourceIn) -> GoalFundingSource:
    return GoalFundingSource(
        source_name=security_manager.sanitize_text(item.source_name),
        source_type=item.source_type,
        amount=item.amount,
        probability_percentage=item.probability_percentage,
        deadline=item.deadline,
        renewable=item.renewable,
        application_status=item.application_status,
        confirmed_amount=item.confirmed_amount,
    )


def _parse_filter(enum_cls, value: Optional[str], field: str):
    if not value:
        return None
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ', '.join(member.value for member in enum_cls)
        raise ValidationFailed('Validation failed', [
            {'field': field, 'message': f"Must be one of: {allowed}"}
        ])


def list_goals(user_id: int, status: Optional[str] = None,
               goal_type: Optional[str] = None) -> List[FinancialGoal]:
    query = (
        db.session.query(FinancialGoal)
        .options(selectinload(FinancialGoal.expenses), selectinload(FinancialGoal.funding_sources))
        .filter(FinancialGoal.user_id == user_id)
    )

    status_filter = _parse_filter(GoalStatus, status, 'status')
    if status_filter is not None:
        query = query.filter(FinancialGoal.status == status_filter)

    type_filter = _parse_filter(GoalType, goal_type, 'type')
    if type_filter is not None:
        query = query.filter(FinancialGoal.goal_type == type_filter)

    return query.order_by(FinancialGoal.created_at.desc(), FinancialGoal.id.desc()).all()


def summarize(goals: List[FinancialGoal]) -> Dict[str, Any]:
    total_target = sum(float(goal.target_amount or 0) for goal in goals)
    total_current = sum(float(goal.current_amount or 0) for goal in goals)
    return {
        'totalGoals': len(goals),
        'totalTargetAmount': total_target,
        'totalCurrentAmount': total_current,
        'fundingGap': total_target - total_current,
        'completionPercentage': (total_current / total_target) * 100 if total_target > 0 else 0,
    }


def get_goal(user_id: int, goal_id: int) -> FinancialGoal:
    """
    Load one of the user's goals

    Raises:
        NotFoundError: when the goal does not exist or belongs to someone else
    """
    goal = (
        db.session.query(FinancialGoal)
        .options(selectinload(FinancialGoal.expenses), selectinload(FinancialGoal.funding_sources))
        .filter(FinancialGoal.id == goal_id, FinancialGoal.user_id == user_id)
        .first()
    )
    if goal is None:
        raise NotFoundError('Financial goal not found')
    return goal


def create_goal(user_id: int, data: GoalCreate) -> FinancialGoal:
    goal = FinancialGoal(user_id=user_id, **_goal_columns(data, partial=False))
    goal.expenses = [_expense(item) for item in data.expenses]
    goal.funding_sources = [_funding_source(item) for item in data.funding_sources]

    try:
        db.session.add(goal)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info(
        f"Financial goal {goal.id} created for user {user_id} "
        f"({len(goal.expenses)} expenses, {len(goal.funding_sources)} funding sources)"
    )
    return goal


def update_goal(user_id: int, goal_id: int, data: GoalUpdate) -> FinancialGoal:
    """Apply a partial update; child lists present in the payload replace the stored ones"""
    goal = get_goal(user_id, goal_id)

    try:
        for column, value in _goal_columns(data, partial=True).items():
            setattr(goal, column, value)

        if data.expenses is not None:
            goal.expenses = [_expense(item) for item in data.expenses]
        if data.funding_sources is not None:
            goal.funding_sources = [_funding_source(item) for item in data.funding_sources]

        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info(f"Financial goal {goal_id} updated for user {user_id}")
    return goal


def delete_goal(user_id: int, goal_id: int) -> None:
    goal = get_goal(user_id, goal_id)
    try:
        db.session.delete(goal)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    logger.info(f"Financial goal {goal_id} deleted for user {user_id}")
