import pytest

from app import create_app
from core.database_models import db
from services.forms import CURRENTLY_ENROLLED
from services.seed_data import DEMO_PASSWORD

PASSWORD = DEMO_PASSWORD


@pytest.fixture
def app():
    app = create_app('testing')
    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


def _registration_payload(email, role, **extra):
    payload = {
        'email': email,
        'password': PASSWORD,
        'name': 'Test User',
        'role': role,
    }
    if role.lower() == 'student':
        payload['educationLevel'] = CURRENTLY_ENROLLED
        payload['institution'] = 'UC Berkeley'
        payload['graduationYear'] = 2027
        payload['major'] = 'Economics'
    payload.update(extra)
    return payload


@pytest.fixture
def register():
    """Register (and thereby sign in) an account on the given client"""
    def _register(client, email='student@stp.com', role='Student', **extra):
        return client.post('/api/auth/register', json=_registration_payload(email, role, **extra))
    return _register


@pytest.fixture
def make_client(app, register):
    """A fresh test client with a registered, signed-in account"""
    def _make_client(email='student@stp.com', role='Student', **extra):
        new_client = app.test_client()
        response = register(new_client, email=email, role=role, **extra)
        assert response.status_code == 201, response.get_json()
        return new_client
    return _make_client


@pytest.fixture
def student(make_client):
    return make_client()
