# services/applications.py
"""
Application status updates

Status only moves forward: draft -> submitted -> under_review ->
accepted | rejected | waitlisted, and waitlisted -> accepted | rejected.
"""

import logging
from typing import List

from core.database_models import (
    db, ActivityType, Application, ApplicationStatus, Notification, NotificationType, utcnow
)
from core.errors import InvalidStateError, NotFoundError, ValidationFailed
from core.schemas import ApplicationUpdate
from core.security_manager import security_manager

logger = logging.getLogger(__name__)

STATUS_RANK = {
    ApplicationStatus.DRAFT: 0,
    ApplicationStatus.SUBMITTED: 1,
    ApplicationStatus.UNDER_REVIEW: 2,
    ApplicationStatus.WAITLISTED: 3,
    ApplicationStatus.ACCEPTED: 4,
    ApplicationStatus.REJECTED: 4,
}

DECIDED = (ApplicationStatus.ACCEPTED, ApplicationStatus.REJECTED)


def can_transition(current: ApplicationStatus, new: ApplicationStatus) -> bool:
    if current == new:
        return True
    return STATUS_RANK[new] > STATUS_RANK[current]


def list_applications(user_id: int) -> List[Application]:
    return (
        db.session.query(Application)
        .filter(Application.user_id == user_id)
        .order_by(Application.created_at.desc(), Application.id.desc())
        .all()
    )


def update_application(user_id: int, application_id: int, data: ApplicationUpdate) -> Application:
    application = (
        db.session.query(Application)
        .filter(Application.id == application_id, Application.user_id == user_id)
        .first()
    )
    if application is None:
        raise NotFoundError('Application not found')

    now = utcnow()
    previous = application.status
    new_status = data.status or previous

    if not can_transition(previous, new_status):
        raise InvalidStateError(
            f"Cannot change application status from {previous.value} to {new_status.value}"
        )

    if data.award_amount is not None and new_status != ApplicationStatus.ACCEPTED:
        raise ValidationFailed('Validation failed', [
            {'field': 'awardAmount', 'message': 'Award amount can only be recorded for accepted applications'}
        ])

    try:
        if new_status != previous:
            application.status = new_status
            application.status_updated_at = now
            if new_status != ApplicationStatus.DRAFT and application.submitted_at is None:
                application.submitted_at = now
            if new_status in DECIDED and application.decision_date is None:
                application.decision_date = data.decision_date or now

            db.session.add(Notification(
                user_id=user_id,
                type=NotificationType.STATUS_UPDATE,
                title='Application Status Update',
                message=(f"{application.scholarship.title} application moved from "
                         f"{previous.value} to {new_status.value}"),
                action_url=f"/dashboard/applications/{application.id}",
            ))
            security_manager.log_activity(
                user_id, ActivityType.APPLICATION_STATUS_CHANGED, 'application', application.id,
                {'from': previous.value, 'to': new_status.value}
            )

        if 'notes' in data.model_fields_set:
            application.notes = security_manager.sanitize_text(data.notes)
        if data.award_amount is not None:
            application.award_amount = data.award_amount
        if data.decision_date is not None:
            application.decision_date = data.decision_date

        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info(f"Application {application_id} updated by user {user_id}: {previous.value} -> {new_status.value}")
    return application
