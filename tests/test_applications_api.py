import pytest

from core.database_models import ApplicationStatus
from services.applications import can_transition

QUICK_ADD = {'title': 'Merit Award', 'amount': 4000, 'deadline': '2030-02-01T00:00:00'}


@pytest.fixture
def application_id(student):
    return student.post('/api/scholarships', json=QUICK_ADD).get_json()['application']['id']


def _patch(client, application_id, **payload):
    return client.patch(f'/api/applications/{application_id}', json=payload)


def test_list_applications_includes_scholarship(student, application_id) -> None:
    body = student.get('/api/applications').get_json()
    assert body['totalCount'] == 1
    assert body['applications'][0]['id'] == application_id
    assert body['applications'][0]['scholarship']['title'] == 'Merit Award'


def test_submit_sets_timestamps_and_notifies(student, application_id) -> None:
    r = _patch(student, application_id, status='submitted', notes='Sent with transcript')
    assert r.status_code == 200
    application = r.get_json()['application']
    assert application['status'] == 'submitted'
    assert application['submittedAt'] is not None
    assert application['statusUpdatedAt'] is not None
    assert application['decisionDate'] is None
    assert application['notes'] == 'Sent with transcript'

    notifications = student.get('/api/notifications').get_json()
    assert notifications['unreadCount'] == 1
    assert notifications['notifications'][0]['type'] == 'status_update'
    assert 'moved from draft to submitted' in notifications['notifications'][0]['message']


def test_status_cannot_move_backwards(student, application_id) -> None:
    _patch(student, application_id, status='submitted')
    r = _patch(student, application_id, status='draft')
    assert r.status_code == 422
    assert r.get_json() == {'error': 'Cannot change application status from submitted to draft'}


def test_award_requires_accepted_status(student, application_id) -> None:
    r = _patch(student, application_id, awardAmount=1000)
    assert r.status_code == 400
    assert r.get_json()['validationIssues']['errors'][0]['field'] == 'awardAmount'


def test_accepting_records_award_and_decision(student, application_id) -> None:
    _patch(student, application_id, status='submitted')
    r = _patch(student, application_id, status='accepted', awardAmount=3500)
    application = r.get_json()['application']
    assert application['status'] == 'accepted'
    assert application['awardAmount'] == 3500
    assert application['decisionDate'] is not None

    stats = student.get('/api/dashboard').get_json()['stats']
    assert stats['funding']['won'] == 3500
    assert stats['applications']['accepted'] == 1
    assert stats['successRate'] == 100


def test_invalid_status_value(student, application_id) -> None:
    r = _patch(student, application_id, status='shortlisted')
    assert r.status_code == 400
    assert r.get_json()['validationIssues']['errors'][0]['field'] == 'status'


def test_cannot_update_someone_elses_application(make_client, application_id) -> None:
    other = make_client(email='other@stp.com')
    r = _patch(other, application_id, status='submitted')
    assert r.status_code == 404


@pytest.mark.parametrize(
    'current, new, allowed',
    [
        (ApplicationStatus.DRAFT, ApplicationStatus.SUBMITTED, True),
        (ApplicationStatus.DRAFT, ApplicationStatus.ACCEPTED, True),
        (ApplicationStatus.SUBMITTED, ApplicationStatus.SUBMITTED, True),
        (ApplicationStatus.UNDER_REVIEW, ApplicationStatus.WAITLISTED, True),
        (ApplicationStatus.WAITLISTED, ApplicationStatus.ACCEPTED, True),
        (ApplicationStatus.WAITLISTED, ApplicationStatus.REJECTED, True),
        (ApplicationStatus.SUBMITTED, ApplicationStatus.DRAFT, False),
        (ApplicationStatus.ACCEPTED, ApplicationStatus.REJECTED, False),
        (ApplicationStatus.REJECTED, ApplicationStatus.WAITLISTED, False),
    ],
)
def test_can_transition(current, new, allowed) -> None:
    assert can_transition(current, new) is allowed
