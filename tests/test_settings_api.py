from core.database_models import db, User
from services.seed_data import DEMO_PASSWORD as PASSWORD

NEW_PASSWORD = 'Graduate#2025'


def test_get_settings(student) -> None:
    body = student.get('/api/settings').get_json()
    assert body['user']['email'] == 'student@stp.com'
    assert body['preferences'] == {}


def test_update_profile(student) -> None:
    r = student.put('/api/settings/profile', json={
        'name': '<i>Jamie</i> Cruz', 'gpa': '3.85', 'graduationYear': 2028, 'major': 'Biology'
    })
    assert r.status_code == 200
    user = r.get_json()['user']
    assert user['name'] == 'Jamie Cruz'
    assert user['gpa'] == 3.85
    assert user['graduationYear'] == 2028
    assert user['major'] == 'Biology'
    assert user['school'] == 'UC Berkeley'


def test_update_profile_validates_ranges(student) -> None:
    r = student.put('/api/settings/profile', json={'gpa': 4.5, 'graduationYear': 2010})
    assert r.status_code == 400
    fields = sorted(issue['field'] for issue in r.get_json()['validationIssues']['errors'])
    assert fields == ['gpa', 'graduationYear']


def test_preferences_are_merged(student) -> None:
    student.put('/api/settings/preferences', json={'preferences': {'theme': 'dark', 'emailDigest': 'weekly'}})
    r = student.put('/api/settings/preferences', json={'preferences': {'emailDigest': 'daily'}})
    assert r.get_json()['preferences'] == {'theme': 'dark', 'emailDigest': 'daily'}


def test_change_password(client, student) -> None:
    r = student.post('/api/settings/password', json={
        'currentPassword': PASSWORD, 'newPassword': NEW_PASSWORD, 'confirmPassword': NEW_PASSWORD
    })
    assert r.status_code == 200

    assert client.post('/api/auth/login', json={'email': 'student@stp.com', 'password': PASSWORD}).status_code == 401
    assert client.post('/api/auth/login', json={'email': 'student@stp.com', 'password': NEW_PASSWORD}).status_code == 200


def test_change_password_errors(student) -> None:
    r = student.post('/api/settings/password', json={
        'currentPassword': PASSWORD, 'newPassword': NEW_PASSWORD, 'confirmPassword': 'Different#2025'
    })
    assert r.status_code == 400
    assert r.get_json()['error'] == 'New passwords do not match'

    r = student.post('/api/settings/password', json={
        'currentPassword': 'Wrong#Pass99', 'newPassword': NEW_PASSWORD, 'confirmPassword': NEW_PASSWORD
    })
    assert r.status_code == 400
    assert r.get_json()['error'] == 'Current password is incorrect'

    r = student.post('/api/settings/password', json={
        'currentPassword': PASSWORD, 'newPassword': 'weakpass', 'confirmPassword': 'weakpass'
    })
    assert r.status_code == 400
    assert r.get_json()['error'] == 'Password does not meet requirements'

    r = student.post('/api/settings/password', json={
        'currentPassword': PASSWORD, 'newPassword': PASSWORD, 'confirmPassword': PASSWORD
    })
    assert r.status_code == 400
    assert r.get_json()['error'] == 'New password must be different from the current password'


def test_change_email(student) -> None:
    r = student.post('/api/settings/email', json={'newEmail': 'New.Address@stp.com', 'password': PASSWORD})
    assert r.status_code == 200
    user = r.get_json()['user']
    assert user['email'] == 'new.address@stp.com'
    assert user['emailVerified'] is False


def test_change_email_conflict(make_client, student) -> None:
    make_client(email='taken@stp.com')
    r = student.post('/api/settings/email', json={'newEmail': 'taken@stp.com', 'password': PASSWORD})
    assert r.status_code == 409
    assert r.get_json() == {'error': 'Email address is already in use'}


def test_change_email_race_on_same_address_conflicts(make_client, student, monkeypatch) -> None:
    make_client(email='taken@stp.com')
    monkeypatch.setattr('api.settings._email_in_use', lambda email, user_id: False)

    r = student.post('/api/settings/email', json={'newEmail': 'taken@stp.com', 'password': PASSWORD})
    assert r.status_code == 409
    assert r.get_json() == {'error': 'Email address is already in use'}
    assert student.get('/api/settings').get_json()['user']['email'] == 'student@stp.com'


def test_change_email_requires_password(student) -> None:
    r = student.post('/api/settings/email', json={'newEmail': 'fresh@stp.com', 'password': 'Wrong#Pass99'})
    assert r.status_code == 400


def test_delete_account_soft_deletes_and_signs_out(app, client, student) -> None:
    r = student.delete('/api/settings/account', json={'password': PASSWORD})
    assert r.status_code == 200
    assert student.get('/api/auth/session').get_json() == {'user': None}

    with app.app_context():
        user = db.session.query(User).filter_by(email='student@stp.com').one()
        assert user.deleted_at is not None
        assert user.is_active is False

    r = client.post('/api/auth/login', json={'email': 'student@stp.com', 'password': PASSWORD})
    assert r.status_code == 401


def test_delete_account_requires_password(student) -> None:
    r = student.delete('/api/settings/account', json={'password': 'Wrong#Pass99'})
    assert r.status_code == 400
    assert student.get('/api/auth/session').get_json()['user'] is not None
