# services/dashboard.py
"""
Dashboard aggregation: scholarship/application statistics per user and the
financial metrics snapshot built on top of them
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import selectinload

from core.database_models import (
    db, ActivityLog, Application, ApplicationStatus, FinancialGoal, Scholarship,
    UserConnection, utcnow
)
from services.financial_analytics import (
    FinancialMetrics, GoalSnapshot, ScholarshipStats, calculate_metrics
)

logger = logging.getLogger(__name__)

PENDING_STATUSES = (
    ApplicationStatus.DRAFT,
    ApplicationStatus.SUBMITTED,
    ApplicationStatus.UNDER_REVIEW,
    ApplicationStatus.WAITLISTED,
)

UPCOMING_DEADLINE_WINDOW = timedelta(days=30)


def user_scholarships(user_id: int) -> List[Scholarship]:
    return (
        db.session.query(Scholarship)
        .filter(Scholarship.created_by == user_id)
        .order_by(Scholarship.application_deadline.asc(), Scholarship.id.asc())
        .all()
    )


def scholarship_stats(user_id: int, now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Application and funding statistics for one user

    Won funding is the award amount of accepted applications (falling back
    to the scholarship amount when no award was recorded); potential funding
    is the scholarship amount of every application still in play.
    """
    now = now or utcnow()
    rows = (
        db.session.query(Application, Scholarship)
        .join(Scholarship, Application.scholarship_id == Scholarship.id)
        .filter(Application.user_id == user_id)
        .all()
    )

    counts = {status: 0 for status in ApplicationStatus}
    won = 0.0
    potential = 0.0
    for application, scholarship in rows:
        counts[application.status] += 1
        if application.status == ApplicationStatus.ACCEPTED:
            award = application.award_amount if application.award_amount is not None else scholarship.amount
            won += float(award or 0)
        elif application.status in PENDING_STATUSES:
            potential += float(scholarship.amount or 0)

    scholarships = user_scholarships(user_id)
    tracked = sum(float(s.amount or 0) for s in scholarships)
    upcoming = sum(
        1 for s in scholarships
        if now < s.application_deadline <= now + UPCOMING_DEADLINE_WINDOW
    )

    accepted = counts[ApplicationStatus.ACCEPTED]
    rejected = counts[ApplicationStatus.REJECTED]
    decided = accepted + rejected

    return {
        'applications': {
            'total': len(rows),
            'draft': counts[ApplicationStatus.DRAFT],
            'submitted': counts[ApplicationStatus.SUBMITTED],
            'underReview': counts[ApplicationStatus.UNDER_REVIEW],
            'accepted': accepted,
            'rejected': rejected,
            'waitlisted': counts[ApplicationStatus.WAITLISTED],
        },
        'scholarships': {
            'saved': len(scholarships),
        },
        'funding': {
            'total': tracked,
            'won': won,
            'potential': potential,
        },
        'successRate': round(accepted / decided * 100) if decided else 0,
        'upcomingDeadlines': upcoming,
    }


def load_goals(user_id: int) -> List[FinancialGoal]:
    return (
        db.session.query(FinancialGoal)
        .options(selectinload(FinancialGoal.expenses), selectinload(FinancialGoal.funding_sources))
        .filter(FinancialGoal.user_id == user_id)
        .order_by(FinancialGoal.created_at.desc(), FinancialGoal.id.desc())
        .all()
    )


def financial_metrics(user_id: int, stats: Dict[str, Any] = None,
                      now: Optional[datetime] = None) -> FinancialMetrics:
    """Run the aggregator over the user's stored goals and live scholarship stats"""
    if stats is None:
        stats = scholarship_stats(user_id, now=now)
    snapshots = [GoalSnapshot.from_model(goal) for goal in load_goals(user_id)]
    return calculate_metrics(snapshots, ScholarshipStats.from_dict(stats), now=now)


def recent_activity(user_id: int, limit: int = 10) -> List[Dict[str, Any]]:
    entries = (
        db.session.query(ActivityLog)
        .filter(ActivityLog.user_id == user_id)
        .order_by(ActivityLog.timestamp.desc(), ActivityLog.id.desc())
        .limit(limit)
        .all()
    )
    return [
        {
            'id': entry.id,
            'action': entry.action,
            'entityType': entry.entity_type,
            'entityId': entry.entity_id,
            'timestamp': entry.timestamp.isoformat(),
        }
        for entry in entries
    ]


def collaborator_count(user_id: int) -> int:
    return (
        db.session.query(UserConnection)
        .filter(
            UserConnection.is_active.is_(True),
            (UserConnection.parent_user_id == user_id) | (UserConnection.child_user_id == user_id),
        )
        .count()
    )


def build_dashboard(user) -> Dict[str, Any]:
    now = utcnow()
    scholarships = user_scholarships(user.id)
    stats = scholarship_stats(user.id, now=now)
    metrics = financial_metrics(user.id, stats=stats, now=now)

    logger.info(
        f"Dashboard built for user {user.id}: "
        f"{stats['applications']['total']} applications, {len(scholarships)} scholarships"
    )

    return {
        'userScholarships': [s.to_dict() for s in scholarships],
        'stats': stats,
        'welcomeStats': {
            'applications': stats['applications']['total'],
            'totalTracked': stats['funding']['total'],
            'collaborators': collaborator_count(user.id),
        },
        'financialMetrics': metrics.to_dict(),
        'recentActivity': recent_activity(user.id),
        'user': user.to_dict(),
    }
