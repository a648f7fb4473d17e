import pytest


def _user_id(client):
    return client.get('/api/auth/session').get_json()['user']['id']


def _invite(client, email, **extra):
    return client.post('/api/connections/invite', json=dict({'email': email}, **extra))


@pytest.fixture
def parent_connection(make_client, student):
    token = _invite(student, 'parent@stp.com').get_json()['inviteToken']
    parent = make_client(email='parent@stp.com', role='Parent')
    r = parent.post('/api/connections/accept', json={'token': token})
    assert r.status_code == 201, r.get_json()
    return parent, r.get_json()['connection']


def test_student_invites_parent(student) -> None:
    r = _invite(student, 'Parent@stp.com')
    assert r.status_code == 201
    body = r.get_json()
    assert body['inviteToken']
    assert body['expiresInDays'] == 7


def test_accepting_invite_creates_connection(student, parent_connection) -> None:
    parent, connection = parent_connection

    assert connection['connectionType'] == 'parent'
    assert connection['parentUserId'] == _user_id(parent)
    assert connection['childUserId'] == _user_id(student)
    assert connection['permissions']['canViewFinancials'] is True
    assert connection['connectedUser']['email'] == 'student@stp.com'

    listed = student.get('/api/connections').get_json()['connections']
    assert [c['connectedUser']['email'] for c in listed] == ['parent@stp.com']

    welcome = student.get('/api/dashboard').get_json()['welcomeStats']
    assert welcome['collaborators'] == 1


def test_invite_existing_connection_conflicts(student, parent_connection) -> None:
    r = _invite(student, 'parent@stp.com')
    assert r.status_code == 409


def test_counselor_invites_student(make_client, student) -> None:
    counselor = make_client(email='counselor@stp.com', role='Counselor', institution='Lincoln High')
    token = _invite(counselor, 'student@stp.com').get_json()['inviteToken']

    r = student.post('/api/connections/accept', json={'token': token})
    assert r.status_code == 201
    connection = r.get_json()['connection']
    assert connection['connectionType'] == 'counselor'
    assert connection['parentUserId'] == _user_id(counselor)


def test_student_can_invite_unregistered_counselor(make_client, student) -> None:
    token = _invite(student, 'advisor@stp.com', role='Counselor').get_json()['inviteToken']
    counselor = make_client(email='advisor@stp.com', role='Counselor', institution='Lincoln High')

    r = counselor.post('/api/connections/accept', json={'token': token})
    assert r.get_json()['connection']['connectionType'] == 'counselor'


def test_students_cannot_connect_to_students(make_client, student) -> None:
    make_client(email='classmate@stp.com')
    r = _invite(student, 'classmate@stp.com')
    assert r.status_code == 400


def test_cannot_invite_yourself(student) -> None:
    r = _invite(student, 'student@stp.com')
    assert r.status_code == 400
    assert r.get_json()['validationIssues']['errors'][0]['message'] == 'You cannot invite yourself'


def test_invite_for_someone_else_is_rejected(make_client, student) -> None:
    token = _invite(student, 'parent@stp.com').get_json()['inviteToken']
    stranger = make_client(email='stranger@stp.com', role='Parent')

    r = stranger.post('/api/connections/accept', json={'token': token})
    assert r.status_code == 403


def test_invalid_token_is_rejected(make_client) -> None:
    parent = make_client(email='parent@stp.com', role='Parent')
    r = parent.post('/api/connections/accept', json={'token': 'not-a-real-token'})
    assert r.status_code == 400
    assert r.get_json()['error'] == 'Invalid or expired invitation link.'


def test_remove_connection(make_client, student, parent_connection) -> None:
    _, connection = parent_connection

    outsider = make_client(email='outsider@stp.com')
    assert outsider.delete(f"/api/connections/{connection['id']}").status_code == 404

    assert student.delete(f"/api/connections/{connection['id']}").status_code == 200
    assert student.get('/api/connections').get_json()['connections'] == []
